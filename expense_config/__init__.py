"""
expense_config -- single public entrypoint for kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``expense_kernel``.  The kernel never
    imports from ``expense_config``; ``expense_config.bridges`` translates
    the parsed config into kernel inputs.

Resolution order:
    1. ``path`` argument
    2. ``EXPENSE_CONFIG_FILE`` environment variable
    3. ``expense_config/sets/default.yaml``

    ``DATABASE_URL`` and ``EXPENSE_LOG_LEVEL`` then override the file.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``expense_config_trace`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from expense_config.loader import apply_env_overrides, load_yaml_file, parse_kernel_config
from expense_config.schema import DatabaseConfig, KernelConfig, LoggingConfig, PolicyConfig

_logger = logging.getLogger("expense_kernel.config")

DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> KernelConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Explicit YAML file.  Defaults to ``EXPENSE_CONFIG_FILE`` or
            the bundled default set.
        env: Environment mapping for overrides.  Defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        KeyError / ValueError: If the file fails validation.
    """
    env = os.environ if env is None else env
    config_path = Path(path or env.get("EXPENSE_CONFIG_FILE") or DEFAULT_CONFIG_FILE)

    data = apply_env_overrides(load_yaml_file(config_path), env)
    config = parse_kernel_config(data)

    _logger.info(
        "expense_config_trace",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "DatabaseConfig",
    "KernelConfig",
    "LoggingConfig",
    "PolicyConfig",
    "get_active_config",
]
