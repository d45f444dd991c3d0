import logging
import uuid
import contextvars
import time
from functools import wraps
from typing import Optional, Dict, Any

# Context Variables for Trace Context
_trace_id_ctx = contextvars.ContextVar("trace_id", default=None)
_span_id_ctx = contextvars.ContextVar("span_id", default=None)
_conversation_id_ctx = contextvars.ContextVar("conversation_id", default=None)

_trace_logger = logging.getLogger("deskflow.trace")

class TraceManager:
    """
    Manages structured logging and tracing context.
    Events go through the `deskflow.trace` logger so the JSON formatter
    renders them alongside regular log lines.
    """

    @staticmethod
    def get_trace_id() -> str:
        tid = _trace_id_ctx.get()
        if not tid:
            tid = str(uuid.uuid4())
            _trace_id_ctx.set(tid)
        return tid

    @staticmethod
    def set_trace_id(trace_id: str):
        _trace_id_ctx.set(trace_id)

    @staticmethod
    def get_conversation_id() -> Optional[str]:
        return _conversation_id_ctx.get()

    @staticmethod
    def set_conversation_id(conversation_id: Optional[str]):
        _conversation_id_ctx.set(conversation_id)

    @staticmethod
    def log(level: str, message: str, extra: Optional[Dict[str, Any]] = None):
        payload = {
            "span_id": _span_id_ctx.get(),
            **(extra or {})
        }
        _trace_logger.log(
            logging.getLevelName(level.upper()),
            message,
            extra={
                "trace_id": TraceManager.get_trace_id(),
                "conversation_id": _conversation_id_ctx.get(),
                "event": payload,
            },
        )

    @staticmethod
    def info(message: str, **kwargs):
        TraceManager.log("INFO", message, kwargs)

    @staticmethod
    def warning(message: str, **kwargs):
        TraceManager.log("WARNING", message, kwargs)

    @staticmethod
    def audit(event: str, **kwargs):
        """Business event (intent detected, record created, ...)."""
        TraceManager.log("INFO", f"Audit: {event}", {"audit_event": event, **kwargs})

    @staticmethod
    def error(message: str, exc: Optional[Exception] = None, **kwargs):
        extra = kwargs
        if exc:
            extra["error"] = str(exc)
            extra["error_type"] = type(exc).__name__
        TraceManager.log("ERROR", message, extra)

    @staticmethod
    def span(name: str):
        """
        Decorator to trace a coroutine execution as a span.
        """
        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                parent_span = _span_id_ctx.get()
                token = _span_id_ctx.set(str(uuid.uuid4()))

                start_time = time.time()
                TraceManager.info(f"Start Span: {name}", span_name=name, parent_span=parent_span)

                try:
                    result = await func(*args, **kwargs)
                    duration = time.time() - start_time
                    TraceManager.info(f"End Span: {name}", span_name=name, duration_ms=duration*1000)
                    return result
                except Exception as e:
                    duration = time.time() - start_time
                    TraceManager.error(f"Error Span: {name}", exc=e, span_name=name, duration_ms=duration*1000)
                    raise
                finally:
                    _span_id_ctx.reset(token)
            return wrapper
        return decorator
