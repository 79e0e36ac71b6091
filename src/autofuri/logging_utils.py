from __future__ import annotations

import sys
import warnings

__all__ = [
    "debug_log",
    "reset_warnings",
    "set_debug_logging",
    "warn_once",
]

_DEBUG_LOG = False
_EMITTED: set[str] = set()


def set_debug_logging(enabled: bool) -> None:
    global _DEBUG_LOG
    _DEBUG_LOG = enabled


def debug_log(message: str) -> None:
    if _DEBUG_LOG:
        print(f"[autofuri debug] {message}", file=sys.stderr)


def warn_once(key: str, message: str) -> bool:
    """Emit ``message`` as a RuntimeWarning the first time ``key`` is seen."""
    debug_log(message)
    if key in _EMITTED:
        return False
    _EMITTED.add(key)
    warnings.warn(message, RuntimeWarning, stacklevel=3)
    return True


def reset_warnings() -> None:
    _EMITTED.clear()
