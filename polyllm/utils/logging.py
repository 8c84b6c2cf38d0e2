"""
Logging configuration using loguru.
"""
import sys
from typing import Any, Optional

from loguru import logger

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

_handler_id: Optional[int] = None


def setup_logging(level: str = "INFO", log_format: str = "plain", debug: bool = False) -> None:
    """Configure the console sink.

    Calling it again replaces the sink installed by the previous call, so the
    minimum level can be changed at runtime.
    """
    global _handler_id

    if _handler_id is None:
        # Remove default logger
        logger.remove()
    else:
        logger.remove(_handler_id)

    # Configure log format
    if log_format == "json":
        fmt = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message} | {extra}"
        serialize = True
    else:
        fmt = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
        serialize = False

    _handler_id = logger.add(
        sys.stderr,
        format=fmt,
        level=level.upper(),
        serialize=serialize,
        backtrace=debug,
        diagnose=debug,
    )


def get_logger(name: str) -> Any:
    """Get a logger instance with a specific name."""
    return logger.bind(name=name)


class NullLogger:
    """Logger that discards everything."""

    def bind(self, **kwargs: Any) -> "NullLogger":
        return self

    def trace(self, *args: Any, **kwargs: Any) -> None:
        pass

    debug = info = success = warning = error = critical = exception = trace


class DebugManager:
    """
    Structured key-value event sink used by the generate pipeline.

    Wraps any logger exposing ``debug``/``info``/``warning``/``error``; a
    :class:`NullLogger` can be substituted without changing behavior. Sink
    failures are dropped so that logging never aborts a call.
    """

    def __init__(
        self,
        logger: Any = None,
        *,
        log_prompts: bool = False,
        log_responses: bool = False,
        preview_chars: int = 2000,
    ):
        self.logger = logger if logger is not None else get_logger("polyllm")
        self.log_prompts = log_prompts
        self.log_responses = log_responses
        self.preview_chars = preview_chars

    @staticmethod
    def _format(msg: str, fields: dict) -> str:
        if not fields:
            return msg
        pairs = " ".join(f"{key}={value!r}" for key, value in fields.items())
        return f"{msg} | {pairs}"

    def _emit(self, level: str, msg: str, fields: dict) -> None:
        try:
            sink = self.logger
            if fields and hasattr(sink, "bind"):
                sink = sink.bind(**fields)
            getattr(sink, level)(self._format(msg, fields))
        except Exception:  # noqa: BLE001
            # sink failures never propagate into generation
            pass

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit("debug", msg, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit("info", msg, fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self._emit("warning", msg, fields)

    def error(self, msg: str, **fields: Any) -> None:
        self._emit("error", msg, fields)

    def _preview(self, text: str) -> str:
        return (text[: self.preview_chars] + "...") if len(text) > self.preview_chars else text

    def log_prompt(self, prompt: str) -> None:
        if self.log_prompts:
            self.debug("Prompt", length=len(prompt), text=self._preview(prompt))

    def log_response(self, response: str) -> None:
        if self.log_responses:
            self.debug("Response", length=len(response), text=self._preview(response))


__all__ = ["logger", "get_logger", "setup_logging", "DebugManager", "NullLogger", "LOG_LEVELS"]
