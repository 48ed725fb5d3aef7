"""Settings loading with deterministic precedence.

The cascade is always:
1) Explicit keyword overrides
2) Environment variables
3) ~/.config/trail/trail.yaml (or an explicit path)
4) Model defaults

Environment variable format:
- Prefix: ``TRAIL_``
- Nested keys: ``__`` separator
- Example: ``TRAIL_LOGGING__LEVEL=DEBUG`` -> ``logging.level = "DEBUG"``
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar

from .models import TrailSettings


def load_settings(
    *,
    config_path: str | Path | None = None,
    **overrides: Any,
) -> TrailSettings:
    """Load typed settings, optionally reading YAML from ``config_path``."""
    if config_path is None:
        return TrailSettings(**overrides)

    resolved = Path(config_path)
    if resolved.exists() and not resolved.is_file():
        raise ValueError(f"Config path must be a file: {resolved}")

    class _PathTrailSettings(TrailSettings):
        _config_path: ClassVar[Path] = resolved

    return _PathTrailSettings(**overrides)
