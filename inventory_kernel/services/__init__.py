"""
Write-side services.

MutationOrchestrator is the entry point; the other services are its steps
and flush within the orchestrator's transactions.
"""

from inventory_kernel.services.alert_lifecycle import AlertLifecycleManager
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.event_publisher import LOW_STOCK_ALERT_TOPIC, EventPublisher
from inventory_kernel.services.item_ledger import ItemLedger
from inventory_kernel.services.item_locks import ItemLockRegistry
from inventory_kernel.services.movement_recorder import MovementRecorder
from inventory_kernel.services.mutation_orchestrator import MutationOrchestrator

__all__ = [
    "AlertLifecycleManager",
    "BaseService",
    "EventPublisher",
    "ItemLedger",
    "ItemLockRegistry",
    "LOW_STOCK_ALERT_TOPIC",
    "MovementRecorder",
    "MutationOrchestrator",
]
