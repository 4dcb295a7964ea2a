"""
Logging setup for schemaport commands.

Every CLI invocation gets a run ID that is stamped on each log record, so
the lines of one `export generate-mappings` run can be grouped together.
Records are rendered either as plain text or as one JSON object per line.
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

run_id_ctx: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s: %(message)s"

# Third-party loggers that are noisy below WARNING
QUIET_LOGGERS = ("pymongo", "sqlalchemy.engine", "aiosqlite", "asyncpg", "alembic")


class RunIdFilter(logging.Filter):
    """Attach the current run ID (or "-") to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_ctx.get() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        run_id = run_id_ctx.get()
        if run_id:
            payload["run_id"] = run_id

        # extra={"extra_fields": {...}}
        payload.update(getattr(record, "extra_fields", {}))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class PerformanceTracker:
    """
    Time a step of an export run and log the outcome.

    Usage:
        with PerformanceTracker("export_save", logger, namespace="crm"):
            await builder.save()

    The duration is available as `duration_ms` after the block exits.
    Exceptions are logged and re-raised.
    """

    def __init__(
        self,
        operation: str,
        logger: logging.Logger,
        log_level: int = logging.INFO,
        **fields: Any,
    ):
        self.operation = operation
        self.logger = logger
        self.log_level = log_level
        self.fields = fields
        self.started: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def _extra(self, **more: Any) -> Dict[str, Any]:
        return {"extra_fields": {"operation": self.operation, **self.fields, **more}}

    def __enter__(self) -> "PerformanceTracker":
        self.started = time.perf_counter()
        self.logger.debug(f"{self.operation} started", extra=self._extra())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = round((time.perf_counter() - self.started) * 1000, 2)

        if exc_type is None:
            self.logger.log(
                self.log_level,
                f"{self.operation} finished in {self.duration_ms}ms",
                extra=self._extra(duration_ms=self.duration_ms),
            )
            return

        self.logger.error(
            f"{self.operation} failed after {self.duration_ms}ms: {exc_val}",
            extra=self._extra(
                duration_ms=self.duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
            ),
        )


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Replace the root handlers with a single stderr handler.

    Args:
        log_level: Level name such as DEBUG or INFO
        json_format: Emit JSON lines instead of text
    """
    level = getattr(logging, log_level.upper())

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(RunIdFilter())
    handler.setFormatter(StructuredFormatter() if json_format else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_run_id(run_id: Optional[str] = None) -> str:
    """Start a run, generating a short ID when none is given."""
    run_id = run_id or uuid.uuid4().hex[:12]
    run_id_ctx.set(run_id)
    return run_id


def get_run_id() -> Optional[str]:
    return run_id_ctx.get()


def clear_run_id() -> None:
    run_id_ctx.set(None)
