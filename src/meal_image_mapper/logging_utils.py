# logging_utils.py
"""
logging_utils.py

Central logging utilities for the Meal Image Mapper.

Format (one line per log entry):
<RunId>|<Date>|<Time>|<Level>|<File:Line>|<Module.Func>|<ModulePurpose>|
<InvokingFunc>|<InvokingFuncPurpose>|<Detail>|<NextStep>|<Resolution>|<END>

Two interfaces are provided:
  - get_logger(name) returns a stdlib logger whose records are rendered by
    StructuredFormatter. Context goes through `extra=`.
  - log_info / log_error build the same line by hand, for
    scripts that want an explicit module purpose per call.
"""

from __future__ import annotations

import datetime
import inspect
import logging
import uuid
from typing import Dict, Optional

LOG_RUN_ID: str = uuid.uuid4().hex[:8]
# Alias used by modules that stamp run_id explicitly
RUN_ID: str = LOG_RUN_ID

_base_logger = logging.getLogger("meal_image_mapper.run")


def _build_log_line(
    level: str,
    detailed_msg: str,
    *,
    module_purpose: str,
    invoking_function: str = "",
    invoking_purpose: str = "",
    next_step: str = "",
    resolution: str = "",
) -> str:
    # Walk out of _build_log_line <- _log <- log_info/log_error
    caller = inspect.currentframe()
    for _ in range(3):
        caller = caller.f_back if caller is not None else None

    if caller is not None:
        line_no = caller.f_lineno
        func_name = caller.f_code.co_name
    else:
        line_no = -1
        func_name = "<unknown>"

    now = datetime.datetime.now(datetime.timezone.utc)
    parts = [
        LOG_RUN_ID,
        now.strftime("%Y-%m-%d"),
        now.strftime("%H:%M:%S"),
        level.upper(),
        f"L{line_no}",
        func_name,
        module_purpose or "",
        invoking_function or "",
        invoking_purpose or "",
        detailed_msg or "",
        next_step or "",
        resolution or "",
        "END",
    ]
    return "|".join(parts)


def _log(
    level: str,
    message: str,
    *,
    module_purpose: str,
    invoking_function: str = "",
    invoking_purpose: str = "",
    next_step: str = "",
    resolution: str = "",
    exc: Optional[BaseException] = None,
) -> None:
    line = _build_log_line(
        level=level,
        detailed_msg=message,
        module_purpose=module_purpose,
        invoking_function=invoking_function,
        invoking_purpose=invoking_purpose,
        next_step=next_step,
        resolution=resolution,
    )

    if exc is not None:
        line = f"{line} | EXC={repr(exc)}"

    # Pre-rendered lines bypass the structured formatter
    _init_raw_logger()
    if level.upper() == "ERROR":
        _base_logger.error(line)
    else:
        _base_logger.info(line)


def _init_raw_logger() -> None:
    if _base_logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _base_logger.addHandler(handler)
    _base_logger.setLevel(logging.INFO)
    _base_logger.propagate = False


def log_info(
    message: str,
    *,
    module_purpose: str,
    invoking_function: str = "",
    invoking_purpose: str = "",
    next_step: str = "",
    resolution: str = "",
) -> None:
    _log(
        "INFO",
        message,
        module_purpose=module_purpose,
        invoking_function=invoking_function,
        invoking_purpose=invoking_purpose,
        next_step=next_step,
        resolution=resolution,
    )


def log_error(
    message: str,
    *,
    module_purpose: str,
    invoking_function: str = "",
    invoking_purpose: str = "",
    next_step: str = "",
    resolution: str = "",
    exc: Optional[BaseException] = None,
) -> None:
    _log(
        "ERROR",
        message,
        module_purpose=module_purpose,
        invoking_function=invoking_function,
        invoking_purpose=invoking_purpose,
        next_step=next_step,
        resolution=resolution,
        exc=exc,
    )


# ============================================================================
# StructuredFormatter + get_logger() for Python logging
# ============================================================================

class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that emits a single '|' separated line conforming
    to the log template above.
    """

    # High-level purposes by module (file) name
    MODULE_PURPOSES: Dict[str, str] = {
        "config": "Read mapper settings and create the Supabase client",
        "vegetarian_detection": "Keyword scoring of meal/image text into vegetarian or not",
        "similarity": "Cosine and word-set similarity scorers",
        "selector": "Pick the best catalog image for one meal under the vegetarian fail-safe",
        "sources": "Read the image catalog from Supabase Storage or local files",
        "cache": "Build and hold the image catalog for the process lifetime",
        "meal_store": "Read meal plans and write mapping records in Supabase",
        "embeddings": "Turn meal text into embedding vectors",
        "budget": "Track the wall-clock execution budget",
        "batch": "Resolve meals, match them in batches and persist after every batch",
        "handler": "Parse invocation payloads and shape mapping responses",
        "run_mapping": "Local runner for the meal-image mapping invocation",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        """Format log record into structured pipe-delimited format."""
        dt = datetime.datetime.fromtimestamp(record.created)
        date_str = dt.strftime("%Y-%m-%d")
        time_str = dt.strftime("%H:%M:%S")

        run_id = getattr(record, "run_id", RUN_ID)

        level = record.levelname
        code_location = f"{record.filename}:{record.lineno}"
        func_name = record.funcName
        module_name = record.module
        module_purpose = self.MODULE_PURPOSES.get(module_name, "")

        invoking_func = getattr(record, "invoking_func", "")
        invoking_purpose = getattr(record, "invoking_purpose", "")
        next_step = getattr(record, "next_step", "")
        resolution = getattr(record, "resolution", "")

        detail = record.getMessage()
        if record.exc_info:
            detail = f"{detail} | EXC={self.formatException(record.exc_info)!r}"

        return (
            f"{run_id}|{date_str}|{time_str}|{level}|{code_location}|"
            f"{module_name}.{func_name}|{module_purpose}|"
            f"{invoking_func}|{invoking_purpose}|"
            f"{detail}|{next_step}|{resolution}|<END>"
        )


def init_logging(level: int = logging.INFO) -> None:
    """
    Initialize root logger once with our StructuredFormatter.

    Call get_logger() from modules instead of calling logging.basicConfig()
    everywhere, so configuration stays central.
    """
    root = logging.getLogger()
    if root.handlers:
        # Already configured (Lambda runtime, pytest, REPL)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger configured with structured formatting.

    Usage:
        logger = get_logger(__name__)
        logger.info(
            "Something happened",
            extra={
                "invoking_func": "some_function",
                "invoking_purpose": "High-level purpose",
                "next_step": "What happens next",
                "resolution": "How to fix if error",
            },
        )
    """
    init_logging()
    return logging.getLogger(name)
