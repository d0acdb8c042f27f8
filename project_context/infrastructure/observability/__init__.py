from .logging import setup_logging, configure_logging, add_service_context, context_logger, metrics, ContextLogger, MetricsCollector
from .langfuse_tracing import ContextTracer

__all__ = [
    "setup_logging",
    "configure_logging",
    "add_service_context",
    "context_logger",
    "metrics",
    "ContextLogger",
    "MetricsCollector",
    "ContextTracer"
]
