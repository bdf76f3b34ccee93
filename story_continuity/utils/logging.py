from __future__ import annotations

import sys
import uuid
from loguru import logger


_DEFAULT_CONTEXT = {
    "trace_id": "-",
    "command": "-",
    "target": "-",
    "node_id": "-",
    "rule": "-",
}


def _inject_default_context(record: dict) -> None:
    extra = record["extra"]
    for key, value in _DEFAULT_CONTEXT.items():
        extra.setdefault(key, value)


def new_trace_id() -> str:
    return uuid.uuid4().hex[:12]


def setup_logging(level: str, *, trace_id: str | None = None) -> str:
    """Configure loguru logging for one CLI run and return the run's trace id.

    Every record emitted after this call carries the trace id, so the log
    lines of a single ``check`` or ``check-all`` invocation can be grouped.
    """
    run_trace = trace_id or new_trace_id()
    logger.remove()
    logger.configure(patcher=_inject_default_context, extra={"trace_id": run_trace})
    logger.add(
        sys.stderr,
        level=level,
        backtrace=True,
        diagnose=False,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> "
            "| <level>{level:<8}</level> "
            "| trace={extra[trace_id]} cmd={extra[command]} target={extra[target]} "
            "node={extra[node_id]} rule={extra[rule]} "
            "| {message}"
        ),
    )
    return run_trace
