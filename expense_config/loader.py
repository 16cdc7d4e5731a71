"""
Configuration Loader (``expense_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses
of ``expense_config.schema``.  The single public entry point for runtime
config is ``expense_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed document (after environment overrides) for traceability.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url`` -> ``KeyError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Mapping

import yaml

from expense_config.schema import DatabaseConfig, KernelConfig, LoggingConfig, PolicyConfig

_VALID_ROLES = frozenset({"employee", "manager", "admin"})
_VALID_LEVELS = frozenset(logging.getLevelNamesMapping())


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with DATABASE_URL / EXPENSE_LOG_LEVEL applied."""
    result = dict(data)
    if env.get("DATABASE_URL"):
        result["database"] = {**result.get("database", {}), "url": env["DATABASE_URL"]}
    if env.get("EXPENSE_LOG_LEVEL"):
        result["logging"] = {**result.get("logging", {}), "level": env["EXPENSE_LOG_LEVEL"]}
    return result


def _parse_roles(raw: Any, key: str) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    roles = tuple(str(r).strip().lower() for r in (raw or ()))
    unknown = sorted(set(roles) - _VALID_ROLES)
    if unknown:
        raise ValueError(f"policy.{key}: unknown roles {unknown}")
    return roles


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    """Parse the ``database`` section; ``url`` is required."""
    return DatabaseConfig(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
        max_overflow=int(data.get("max_overflow", 5)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        statement_timeout_ms=int(data.get("statement_timeout_ms", 5000)),
        create_tables=bool(data.get("create_tables", False)),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _VALID_LEVELS:
        raise ValueError(f"logging.level: unknown level {level!r}")
    return LoggingConfig(level=level)


def parse_policy(data: dict[str, Any]) -> PolicyConfig:
    currency = str(data.get("default_currency", "USD")).strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(f"policy.default_currency: {currency!r} is not a 3-letter code")
    return PolicyConfig(
        department_roles=_parse_roles(data.get("department_roles", ["manager"]), "department_roles"),
        global_roles=_parse_roles(data.get("global_roles", ["admin"]), "global_roles"),
        default_currency=currency,
    )


def parse_kernel_config(data: dict[str, Any]) -> KernelConfig:
    """
    Parse a complete ``KernelConfig`` from a dict.

    Raises:
        KeyError: if ``database`` or ``database.url`` is missing.
        ValueError: on invalid roles, levels or currency.
    """
    return KernelConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        database=parse_database(data["database"]),
        logging=parse_logging(data.get("logging") or {}),
        policy=parse_policy(data.get("policy") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
