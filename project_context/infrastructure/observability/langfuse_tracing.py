# Langfuse integration
from typing import Optional
from langfuse import get_client
import structlog

from project_context.domain.models import ContextBundle

logger = structlog.get_logger(__name__)


class ContextTracer:
    """Reports assembled contexts to Langfuse when enabled"""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled

    def trace_context_assembly(
        self,
        bundle: ContextBundle,
        variant: str,
        provider_hint: str,
        project_id: Optional[str] = None
    ) -> None:
        if not self.enabled:
            return

        try:
            langfuse = get_client()
            with langfuse.start_as_current_span(name=f"context_assembly.{variant}") as span:
                span.update(
                    input={"provider": provider_hint, "project_id": project_id},
                    output=bundle.stats.model_dump(),
                    metadata={
                        "message_count": len(bundle.messages),
                        "variant": variant
                    }
                )
        except Exception as e:
            # tracing failures stay out of the caller
            logger.warning("Failed to trace context assembly", error=str(e))
