from typing import Callable, List, Optional, Sequence
import time
import structlog

from project_context.domain.models import (
    ContextBundle, ContextStats, Message, MessageRole, ProjectFile, ValidationReport
)
from project_context.infrastructure.config import ContextSettings
from project_context.infrastructure.observability.langfuse_tracing import ContextTracer
from project_context.infrastructure.observability.logging import context_logger, metrics
from .access_tracker import AccessTracker
from .history_collapser import collapse_messages
from .token_estimator import TokenEstimator, count_message_tokens, estimate_tokens

logger = structlog.get_logger(__name__)

# Supplies the static instruction block for a provider ("openai", "anthropic", ...)
InstructionProvider = Callable[[str], str]

TRUNCATION_MARKER = "\n\n... (file truncated)"
EMPTY_PROJECT_NOTICE = "No project files available yet. You will create the initial structure."


class ContextAssembler:
    """Assembles instructions, relevant files and history into one prompt"""

    def __init__(
        self,
        tracker: AccessTracker,
        instruction_provider: InstructionProvider,
        settings: Optional[ContextSettings] = None,
        estimate: TokenEstimator = estimate_tokens,
        tracer: Optional[ContextTracer] = None,
        project_id: Optional[str] = None
    ):
        self.tracker = tracker
        self.instruction_provider = instruction_provider
        self.settings = settings or ContextSettings()
        self.estimate = estimate
        self.tracer = tracer or ContextTracer(enabled=self.settings.tracing_enabled)
        self.project_id = project_id

    def assemble_context(
        self,
        user_message: str,
        history: List[Message],
        files: Sequence[ProjectFile],
        provider_hint: str = "openai"
    ) -> ContextBundle:
        """Build the full prompt under the global token ceiling"""

        start = time.perf_counter()

        instructions = self.instruction_provider(provider_hint)
        instruction_tokens = self.estimate(instructions)

        relevant = self._select_files(files)
        files_block = self.format_files(relevant)
        files_tokens = self.estimate(files_block)

        # History gets whatever instructions and files leave over
        available = self.settings.context_ceiling_tokens - instruction_tokens - files_tokens
        collapsed = collapse_messages(
            history,
            max_tokens=available,
            recent_count=self.settings.recent_message_count,
            estimate=self.estimate
        )

        bundle = self._bundle(instructions, files_block, collapsed, user_message, len(relevant))

        metrics.record_latency("context.assemble", (time.perf_counter() - start) * 1000)
        self._report(bundle, "full", provider_hint)
        return bundle

    def assemble_compact_context(
        self,
        user_message: str,
        history: List[Message],
        files: Sequence[ProjectFile],
        provider_hint: str = "openai"
    ) -> ContextBundle:
        """Tight-budget variant: capped instructions, fewer files, raw recent history"""

        instructions = self.instruction_provider(provider_hint)[:self.settings.compact_instruction_chars]

        relevant = self._select_files(files)[:self.settings.compact_max_files]
        files_block = self.format_files(relevant)

        count = self.settings.compact_history_count
        recent = list(history[-count:]) if count > 0 else []

        bundle = self._bundle(instructions, files_block, recent, user_message, len(relevant))
        self._report(bundle, "compact", provider_hint)
        return bundle

    def _select_files(self, files: Sequence[ProjectFile]) -> List[ProjectFile]:
        by_path = {file.path: file for file in files}
        relevant_paths = self.tracker.get_relevant_files(by_path.keys())
        return [by_path[path] for path in relevant_paths if path in by_path]

    def _bundle(
        self,
        instructions: str,
        files_block: str,
        history: List[Message],
        user_message: str,
        files_included: int
    ) -> ContextBundle:
        stats = ContextStats(
            instruction_tokens=self.estimate(instructions),
            files_tokens=self.estimate(files_block),
            history_tokens=count_message_tokens(history, self.estimate),
            user_message_tokens=self.estimate(user_message),
            files_included=files_included
        )
        stats.total_tokens = (
            stats.instruction_tokens
            + stats.files_tokens
            + stats.history_tokens
            + stats.user_message_tokens
        )

        messages = [
            Message(role=MessageRole.SYSTEM, content=instructions),
            Message(role=MessageRole.SYSTEM, content=files_block),
            *history,
            Message(role=MessageRole.USER, content=user_message, timestamp=time.time()),
        ]
        return ContextBundle(messages=messages, stats=stats)

    def _report(self, bundle: ContextBundle, variant: str, provider_hint: str):
        context_logger.log_context_assembly(self.project_id, variant, bundle.stats.model_dump())
        metrics.set_gauge("context.total_tokens", bundle.stats.total_tokens)
        self.tracer.trace_context_assembly(bundle, variant, provider_hint, self.project_id)

    def truncate_content(self, content: str) -> str:
        """
        Cut content over the per-file budget at a character boundary.

        Keeps the longest prefix the estimator fits inside the budget; the
        estimator is assumed to grow with the text length.
        """

        budget = self.settings.per_file_token_budget
        if self.estimate(content) <= budget:
            return content

        low, high = 0, len(content)
        while low < high:
            middle = (low + high + 1) // 2
            if self.estimate(content[:middle]) <= budget:
                low = middle
            else:
                high = middle - 1

        return content[:low] + TRUNCATION_MARKER

    def format_files(self, files: Sequence[ProjectFile]) -> str:
        """Format files as labelled blocks"""

        if not files:
            return EMPTY_PROJECT_NOTICE

        sections = [
            "# Project Files",
            "",
            f"The following {len(files)} file(s) are most relevant to this conversation:",
            "",
        ]

        for file in files:
            sections.extend([
                "---",
                "",
                f"## File: {file.path}",
                "",
                f"```{file.language or ''}",
                self.truncate_content(file.content),
                "```",
                "",
            ])

        sections.extend([
            "---",
            "",
            "When modifying files:",
            "- Read the file first to see its current state",
            "- Make targeted edits when possible",
            "- Rewrite entire file only when necessary",
            "- Always maintain consistency with existing code style",
            "",
        ])
        return "\n".join(sections)

    def validate_context(self, bundle: ContextBundle) -> ValidationReport:
        """Check an assembled context; never raises"""

        errors: List[str] = []
        warnings: List[str] = []

        ceiling = self.settings.context_ceiling_tokens
        total = bundle.stats.total_tokens

        if total > ceiling:
            errors.append(f"Context exceeds maximum tokens: {total} > {ceiling}")
        if total >= ceiling * self.settings.near_limit_ratio:
            warnings.append(f"Context is near token limit: {total} ({round(total / ceiling * 100)}%)")

        if not bundle.messages:
            errors.append("Context has no messages")
        else:
            if bundle.messages[0].role != MessageRole.SYSTEM:
                errors.append("First message must be the instruction block")
            if bundle.messages[-1].role != MessageRole.USER:
                warnings.append("Last message should be the user message")

        files_included = bundle.stats.files_included
        if files_included == 0:
            warnings.append("No files included in context")
        elif files_included > self.settings.max_files_warning:
            warnings.append(f"Large number of files included: {files_included}")

        return ValidationReport(valid=not errors, errors=errors, warnings=warnings)
