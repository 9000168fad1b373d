"""
farmstock_config -- single public entrypoint for kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  YAML loading is internal; callers receive a
    frozen ``KernelSettings``.

Architecture position:
    Configuration.  This package sits above ``farmstock_kernel``: it may
    import kernel types, but the kernel MUST NEVER import from
    ``farmstock_config``.  ``farmstock_config.bridges`` translates settings
    into engine and coordinator arguments.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` / ``KeyError`` -- schema validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FARMSTOCK_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying kernel behaviour to the exact configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from farmstock_config.loader import apply_overrides, load_yaml_file, parse_settings
from farmstock_config.schema import KernelSettings

_logger = logging.getLogger("farmstock_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = _DEFAULT_CONFIG_DIR / "default.yaml"


def get_active_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> KernelSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML configuration set to load.  Defaults to
            ``farmstock_config/sets/default.yaml``.
        overrides: Individual ``KernelSettings`` fields to replace after
            loading (validated like the file itself).

    Returns:
        Validated, frozen KernelSettings.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_FILE
    settings = parse_settings(load_yaml_file(path))
    if overrides:
        settings = apply_overrides(settings, overrides)

    _logger.info(
        "FARMSTOCK_CONFIG_TRACE",
        extra={
            "trace_type": "FARMSTOCK_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "config_path": str(path),
            "locking_strategy": settings.locking_strategy.value,
            "overrides": sorted(overrides) if overrides else [],
        },
    )
    return settings


__all__ = ["KernelSettings", "get_active_config"]
