"""
JSON contract for command line tools.

A tool prints exactly one JSON object on stdout, success or failure, so that
agents and shell pipelines can parse it without scraping. Everything else
(progress, warnings, tracebacks) goes to stderr through logging.
"""
import logging
import sys
import time
from typing import Any, Callable, Optional, TextIO

from pydantic import BaseModel, Field

from visionkit.errors import VisionKitError

logger = logging.getLogger(__name__)


class ToolError(BaseModel):
    """Machine-readable failure description."""

    code: str = Field(..., description="Stable error code, e.g. 'invalid_box'")
    message: str
    details: Optional[dict] = None


class ToolResponse(BaseModel):
    """Envelope printed by every tool invocation."""

    ok: bool
    tool: str
    result: Any = None
    error: Optional[ToolError] = None
    elapsed_ms: float = Field(0.0, ge=0)


def run_tool(tool: str, fn: Callable[[], Any]) -> tuple[ToolResponse, int]:
    """
    Run ``fn`` and wrap its outcome in a ToolResponse.

    Returns:
        Tuple of (response, process exit code).
    """
    start = time.perf_counter()
    try:
        result = fn()
    except VisionKitError as e:
        logger.debug("%s failed: %s", tool, e)
        error = ToolError(code=e.code, message=e.message, details=e.details)
        exit_code = 1
        result = None
    except ValueError as e:
        logger.debug("%s rejected its arguments: %s", tool, e)
        error = ToolError(code="invalid_argument", message=str(e))
        exit_code = 1
        result = None
    except Exception as e:
        logger.exception("%s crashed", tool)
        error = ToolError(code="internal_error", message=str(e) or type(e).__name__)
        exit_code = 1
        result = None
    else:
        error = None
        exit_code = 0

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    response = ToolResponse(
        ok=error is None,
        tool=tool,
        result=result,
        error=error,
        elapsed_ms=round(elapsed_ms, 3),
    )
    return response, exit_code


def emit(response: ToolResponse, stream: Optional[TextIO] = None) -> None:
    stream = stream or sys.stdout
    stream.write(response.model_dump_json(exclude_none=True) + "\n")
    stream.flush()
