"""
Expense kernel configuration schema.

Frozen dataclasses the loader parses YAML into.  ``KernelConfig`` is the
only runtime artifact; callers never see the raw YAML dict.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Where the entity store lives and how the pool behaves."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5
    pool_timeout: int = 30
    statement_timeout_ms: int = 5000
    create_tables: bool = False


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class PolicyConfig:
    """Approval rule table and submission defaults.

    Role names are the lowercase ``UserRole`` values.
    """

    department_roles: tuple[str, ...] = ("manager",)
    global_roles: tuple[str, ...] = ("admin",)
    default_currency: str = "USD"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KernelConfig:
    """Complete, validated configuration for one deployment."""

    config_id: str
    version: int
    database: DatabaseConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    checksum: str = ""
