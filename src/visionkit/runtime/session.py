"""
ONNX Runtime session helpers.

Provider selection falls back to CPU whenever an accelerator is not compiled
into the installed onnxruntime wheel, so the same tool runs on a laptop and on
a GPU box without code changes.
"""

import logging
import os
from pathlib import Path
from typing import Sequence

import onnxruntime as ort

from visionkit.errors import ModelLoadError

logger = logging.getLogger(__name__)

CPU_PROVIDER = "CPUExecutionProvider"

DEFAULT_PROVIDERS = (
    "CUDAExecutionProvider",
    "CoreMLExecutionProvider",
    CPU_PROVIDER,
)

GRAPH_OPTIMIZATION_LEVELS = {
    "disable": ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
    "basic": ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    "extended": ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    "all": ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
}


def select_providers(preferred: Sequence[str] | None = None) -> list[str]:
    """
    Keep the preferred execution providers that this onnxruntime build offers.

    Order is preserved and CPUExecutionProvider is always the last resort.
    """
    if preferred is None:
        preferred = DEFAULT_PROVIDERS

    available = set(ort.get_available_providers())
    providers = []
    for provider in preferred:
        if provider in providers:
            continue
        if provider in available:
            providers.append(provider)
        elif provider != CPU_PROVIDER:
            logger.warning("Execution provider %s is not available, skipping", provider)

    if CPU_PROVIDER in providers:
        providers.remove(CPU_PROVIDER)
    providers.append(CPU_PROVIDER)
    return providers


def build_session_options(
    intra_op_threads: int | None = None,
    inter_op_threads: int | None = None,
    graph_optimization: str = "all",
    log_severity: int = 3,
) -> ort.SessionOptions:
    """
    Args:
        intra_op_threads: threads used inside an operator. None lets the runtime decide.
        inter_op_threads: threads used across independent operators.
        graph_optimization: one of "disable", "basic", "extended", "all".
        log_severity: 0 verbose, 1 info, 2 warning, 3 error, 4 fatal.
    """
    if graph_optimization not in GRAPH_OPTIMIZATION_LEVELS:
        raise ValueError(
            f"Unknown graph optimization {graph_optimization!r}. "
            f"Available: {', '.join(GRAPH_OPTIMIZATION_LEVELS)}"
        )

    options = ort.SessionOptions()
    options.graph_optimization_level = GRAPH_OPTIMIZATION_LEVELS[graph_optimization]
    options.log_severity_level = log_severity
    if intra_op_threads is not None:
        options.intra_op_num_threads = intra_op_threads
    if inter_op_threads is not None:
        options.inter_op_num_threads = inter_op_threads
        options.execution_mode = ort.ExecutionMode.ORT_PARALLEL
    return options


def suppress_runtime_logs(severity: int = 3) -> None:
    """Silence onnxruntime's native logger below ``severity``."""
    ort.set_default_logger_severity(severity)


def load_session(
    model_path: str | os.PathLike,
    providers: Sequence[str] | None = None,
    options: ort.SessionOptions | None = None,
) -> ort.InferenceSession:
    model_path = Path(model_path)
    if not model_path.is_file():
        raise ModelLoadError(
            f"Model file not found: {model_path}", details={"path": str(model_path)}
        )

    providers = select_providers(providers)
    if options is None:
        options = build_session_options()

    try:
        session = ort.InferenceSession(
            str(model_path), sess_options=options, providers=providers
        )
    except Exception as e:
        raise ModelLoadError(
            f"Could not load model {model_path.name}: {e}",
            details={"path": str(model_path)},
        ) from e

    logger.info("Loaded %s with providers %s", model_path.name, session.get_providers())
    return session
