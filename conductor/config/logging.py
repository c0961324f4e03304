"""
Conductor - Logging Configuration

Structured logging with JSON support.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "conductor"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "context"):
            log_data["context"] = record.context

        if hasattr(record, "extra_data"):
            log_data["data"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure the package root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: Emit JSON lines instead of colored text
        log_file: Optional path for an additional JSON log file

    Returns:
        Configured root logger
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if json_logs:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Attaches bound context (plan_id, sentinel_id, ...) to every record."""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("context", dict(self.extra))
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **context) -> "LoggerAdapter":
        """Return a new adapter with additional context."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger with bound context.

    Args:
        name: Logger name below the package root (e.g. "executor.step")
        **context: Extra context (plan_id, sentinel_id, ...)
    """
    base_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return LoggerAdapter(base_logger, context)


# === Logging helpers ===

def log_step_event(
    logger: logging.LoggerAdapter,
    event: str,
    step_title: str,
    agent_name: Optional[str] = None,
    **extra
):
    """Log a step lifecycle event."""
    logger.info(
        f"Step {event}: {step_title}",
        extra={"extra_data": {"event": event, "step": step_title, "agent": agent_name, **extra}}
    )


def log_llm_request(
    logger: logging.LoggerAdapter,
    purpose: str,
    prompt_length: int,
    response_length: int,
    duration_ms: float,
    **extra
):
    """Log a completion request."""
    logger.debug(
        f"Completion request: {purpose}",
        extra={"extra_data": {
            "purpose": purpose,
            "prompt_length": prompt_length,
            "response_length": response_length,
            "duration_ms": duration_ms,
            **extra
        }}
    )


def log_error(
    logger: logging.LoggerAdapter,
    error: BaseException,
    context: str = "",
    **extra
):
    """Log an error with traceback."""
    logger.error(
        f"Error in {context}: {type(error).__name__}: {str(error)}",
        exc_info=error,
        extra={"extra_data": extra}
    )
