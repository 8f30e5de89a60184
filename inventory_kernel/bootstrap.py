"""
Settings -> running kernel.

Turns an ``InventorySettings`` into the wired collaborators a host process
needs: logging, the engine and session factory, the append-only listeners,
the event publisher and the MutationOrchestrator.  Hosts (HTTP app, CLI,
worker) call ``build_kernel`` once at startup and ``close`` at shutdown.

Usage:
    kernel = build_kernel(load_settings("deploy.yaml"))
    kernel.publisher.subscribe(kernel.settings.publisher.topic, push_to_clients)
    kernel.orchestrator.update_item(item_id, {"stock": 3}, actor)
    ...
    kernel.close()
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_kernel.config import InventorySettings, build_capability_policy, load_settings
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.clock import Clock
from inventory_kernel.logging_config import configure_logging, get_logger
from inventory_kernel.services.event_publisher import EventPublisher
from inventory_kernel.services.item_locks import ItemLockRegistry
from inventory_kernel.services.mutation_orchestrator import MutationOrchestrator

logger = get_logger("bootstrap")


@dataclass(frozen=True)
class InventoryKernel:
    """Process-wide collaborators built from one settings object."""

    settings: InventorySettings
    engine: Engine
    session_factory: sessionmaker[Session]
    publisher: EventPublisher
    locks: ItemLockRegistry
    orchestrator: MutationOrchestrator

    def close(self, timeout: float = 5.0) -> None:
        """Stop the publisher, then dispose the engine."""
        self.publisher.stop(timeout=timeout)
        reset_engine()
        logger.info("kernel_closed")


def build_kernel(
    settings: InventorySettings | None = None,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> InventoryKernel:
    """
    Wire the kernel from settings.

    Args:
        settings: Defaults to ``load_settings()``.
        clock: Passed to the orchestrator; SystemClock when None.
        create_schema: Create missing tables (local use and tests).

    Raises:
        ValueError: A role names an unknown capability.
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level)

    policy = build_capability_policy(settings)
    engine = init_engine_from_url(settings.database_url, echo=settings.echo_sql)
    register_immutability_listeners()
    if create_schema:
        create_tables()

    session_factory = get_session_factory()
    publisher = EventPublisher(queue_size=settings.publisher.queue_size)
    locks = ItemLockRegistry()
    orchestrator = MutationOrchestrator(
        session_factory=session_factory,
        publisher=publisher,
        clock=clock,
        policy=policy,
        locks=locks,
        alert_topic=settings.publisher.topic,
    )
    publisher.start()

    logger.info(
        "kernel_built",
        extra={
            "dialect": engine.dialect.name,
            "topic": settings.publisher.topic,
            "queue_size": settings.publisher.queue_size,
        },
    )
    return InventoryKernel(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        publisher=publisher,
        locks=locks,
        orchestrator=orchestrator,
    )
