from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    if not v:
        return default
    return v in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class PipeSettings:
    log_error_values: bool = False
    body_max_bytes: int = 1024 * 1024


def load_settings() -> PipeSettings:
    """
    Read middleware settings from the environment.

    - `PIPEWISE_LOG_ERROR_VALUES=1` logs every error value a middleware stores in request state
    - `PIPEWISE_BODY_MAX_BYTES=1048576` caps the body size `use_body` will decode (0 = no cap)
    """
    return PipeSettings(
        log_error_values=_env_bool("PIPEWISE_LOG_ERROR_VALUES", default=False),
        body_max_bytes=max(0, _env_int("PIPEWISE_BODY_MAX_BYTES", default=PipeSettings.body_max_bytes)),
    )


__all__ = ["PipeSettings", "load_settings"]
