"""
Capabilities -- single authorization predicate for the mutation pipeline.

Responsibility:
    Maps an actor's role to the set of pipeline capabilities it holds.  The
    MutationOrchestrator evaluates ``CapabilityPolicy.require`` once, before
    any ledger, audit or alert step runs.  Authentication itself is an
    upstream concern; the pipeline trusts the ``Actor`` it is handed.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Default role mapping:
    admin -> every capability
    staff -> MUTATE_STOCK, DELETE_ITEM
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping
from uuid import UUID

from inventory_kernel.exceptions import CapabilityDeniedError


class Capability(str, Enum):
    """Operations an actor may be allowed to perform."""

    CREATE_ITEM = "create_item"
    MUTATE_STOCK = "mutate_stock"
    DELETE_ITEM = "delete_item"
    RESOLVE_ALERT = "resolve_alert"
    GENERATE_PO = "generate_po"


@dataclass(frozen=True)
class Actor:
    """An authenticated caller of the pipeline."""

    id: UUID
    name: str
    role: str


DEFAULT_ROLE_CAPABILITIES: Mapping[str, frozenset[Capability]] = MappingProxyType({
    "admin": frozenset(Capability),
    "staff": frozenset({Capability.MUTATE_STOCK, Capability.DELETE_ITEM}),
})


class CapabilityPolicy:
    """
    Role -> capability lookup.

    Unknown roles hold no capabilities.
    """

    def __init__(self, role_capabilities: Mapping[str, frozenset[Capability]] | None = None):
        source = DEFAULT_ROLE_CAPABILITIES if role_capabilities is None else role_capabilities
        self._roles = MappingProxyType({
            role: frozenset(caps) for role, caps in source.items()
        })

    @classmethod
    def from_names(cls, roles: Mapping[str, list[str]]) -> "CapabilityPolicy":
        """Build from config-style names, e.g. {"staff": ["mutate_stock"]}.

        Raises:
            ValueError: on an unknown capability name.
        """
        return cls({
            role: frozenset(Capability(name) for name in names)
            for role, names in roles.items()
        })

    def capabilities_for(self, role: str) -> frozenset[Capability]:
        return self._roles.get(role, frozenset())

    def allows(self, actor: Actor, capability: Capability) -> bool:
        return capability in self.capabilities_for(actor.role)

    def require(self, actor: Actor, capability: Capability) -> None:
        """Raise CapabilityDeniedError unless the actor holds the capability."""
        if not self.allows(actor, capability):
            raise CapabilityDeniedError(
                actor_id=str(actor.id),
                role=actor.role,
                capability=capability.value,
            )
