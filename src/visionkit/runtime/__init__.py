from visionkit.runtime.session import (
    build_session_options,
    load_session,
    select_providers,
    suppress_runtime_logs,
)

__all__ = [
    "build_session_options",
    "load_session",
    "select_providers",
    "suppress_runtime_logs",
]
