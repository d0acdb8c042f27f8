"""
Collapse older conversation turns into one summary message.

Recent messages are kept verbatim. Older ones are reduced to a numbered list
of what the user asked for and what the assistant did, extracted with simple
patterns. Nothing happens while the history fits its token budget.
"""

from typing import List, Optional
import re
import time
import structlog

from project_context.domain.models import Message, MessageRole
from .token_estimator import TokenEstimator, count_message_tokens, estimate_tokens

logger = structlog.get_logger(__name__)

DEFAULT_MAX_TOKENS = 40_000
DEFAULT_RECENT_COUNT = 10

MIN_REQUEST_LINE_LENGTH = 10
MAX_REQUEST_LENGTH = 100

NO_EVENTS_SUMMARY = "Previous conversation covered general app setup and initial features."
GENERIC_ACTION = "AI provided guidance and code"

_CREATED = re.compile(r"created\s+(?:file|component|screen)?\s*[:`]?\s*([^\n,.:]+)", re.IGNORECASE)
_UPDATED = re.compile(r"updated\s+(?:file|component)?\s*[:`]?\s*([^\n,.:]+)", re.IGNORECASE)
_FIXED = re.compile(r"fixed\s+([^\n.]+)", re.IGNORECASE)
_DEPLOYED = re.compile(r"deployed|✅", re.IGNORECASE)


def collapse_messages(
    history: List[Message],
    max_tokens: int = DEFAULT_MAX_TOKENS,
    recent_count: int = DEFAULT_RECENT_COUNT,
    estimate: TokenEstimator = estimate_tokens
) -> List[Message]:
    """
    Replace older messages with a summary once the history exceeds max_tokens.

    Returns the history unchanged when it fits, when every message falls
    inside the recent window, or when recent_count is not positive.
    Otherwise returns [summary, *recent].
    """

    total = count_message_tokens(history, estimate)
    if total <= max_tokens:
        return history

    if recent_count <= 0:
        return history

    split = max(len(history) - recent_count, 0)
    older, recent = history[:split], history[split:]

    if not older:
        return history

    summary = Message(
        role=MessageRole.SYSTEM,
        content=summarize_older_messages(older),
        timestamp=time.time()
    )

    logger.info(
        "Collapsed conversation history",
        collapsed=len(older),
        kept=len(recent),
        tokens_before=total,
        max_tokens=max_tokens
    )
    return [summary, *recent]


def summarize_older_messages(messages: List[Message]) -> str:
    events: List[str] = []

    for message in messages:
        if message.role == MessageRole.USER:
            request = extract_user_request(message.content)
            if request:
                events.append(f"User requested: {request}")
        elif message.role == MessageRole.ASSISTANT:
            events.extend(extract_ai_actions(message.content))

    if not events:
        return NO_EVENTS_SUMMARY

    return "\n".join([
        "Previous conversation summary:",
        "",
        *(f"{i}. {event}" for i, event in enumerate(events, start=1)),
        "",
        "Recent messages continue below with full context.",
    ])


def extract_user_request(content: str) -> Optional[str]:
    """
    First meaningful line of a user message, capped at 100 characters.

    Lines are stripped before the length check and the stripped line is
    returned, so surrounding indentation never reaches the summary.
    """

    line = next(
        (line.strip() for line in content.split("\n") if len(line.strip()) > MIN_REQUEST_LINE_LENGTH),
        None
    )
    if line is None:
        return None

    if len(line) > MAX_REQUEST_LENGTH:
        return line[:MAX_REQUEST_LENGTH - 3] + "..."
    return line


def extract_ai_actions(content: str) -> List[str]:
    actions: List[str] = []

    match = _CREATED.search(content)
    if match:
        actions.append(f"Created {match.group(1).strip()}")

    match = _UPDATED.search(content)
    if match:
        actions.append(f"Updated {match.group(1).strip()}")

    match = _FIXED.search(content)
    if match:
        actions.append(f"Fixed {match.group(1).strip()}")

    if _DEPLOYED.search(content):
        actions.append("Deployed changes")

    if not actions:
        actions.append(GENERIC_ACTION)

    return actions


def needs_collapsing(
    history: List[Message],
    max_tokens: int = DEFAULT_MAX_TOKENS,
    estimate: TokenEstimator = estimate_tokens
) -> bool:
    return count_message_tokens(history, estimate) > max_tokens


def get_message_token_count(history: List[Message], estimate: TokenEstimator = estimate_tokens) -> int:
    return count_message_tokens(history, estimate)
