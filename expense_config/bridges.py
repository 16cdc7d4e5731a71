"""
Bridges from parsed configuration to kernel inputs.

The kernel never reads configuration; these helpers build the kernel's own
value objects and the workflow facade from a ``KernelConfig``.
"""

from __future__ import annotations

from expense_config import get_active_config
from expense_config.schema import KernelConfig, PolicyConfig
from expense_kernel.db import engine
from expense_kernel.db.immutability import register_immutability_listeners
from expense_kernel.domain.authorization import ApprovalPolicy
from expense_kernel.domain.clock import Clock
from expense_kernel.domain.workflow import UserRole
from expense_kernel.logging_config import configure_logging, get_logger
from expense_kernel.services.expense_workflow import ExpenseWorkflow

logger = get_logger("config.bridges")


def build_approval_policy(policy: PolicyConfig) -> ApprovalPolicy:
    """Translate ``PolicyConfig`` into the resolver's rule table.

    Raises:
        ValueError: if the employee role is granted approval rights or a
            role is listed in both sets.
    """
    return ApprovalPolicy(
        department_roles=frozenset(UserRole(r) for r in policy.department_roles),
        global_roles=frozenset(UserRole(r) for r in policy.global_roles),
    )


def build_workflow(config: KernelConfig | None = None, clock: Clock | None = None) -> ExpenseWorkflow:
    """Wire a ready-to-use ``ExpenseWorkflow`` from configuration.

    Configures logging, initializes the engine, registers the immutability
    listeners and, if ``database.create_tables`` is set, creates the schema.
    """
    config = config or get_active_config()
    configure_logging(level=config.logging.level)

    db = config.database
    engine.init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        statement_timeout_ms=db.statement_timeout_ms,
    )
    register_immutability_listeners()
    if db.create_tables:
        engine.create_tables()

    logger.info(
        "kernel_bootstrapped",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
        },
    )
    return ExpenseWorkflow(
        engine.get_session_factory(),
        clock=clock,
        policy=build_approval_policy(config.policy),
        default_currency=config.policy.default_currency,
    )
