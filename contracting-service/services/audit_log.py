"""
Audit log for contract drafts.

Append-only ledger of ContractEvents keyed by contract id. Every state
transition (creation, verification outcome, manual edit, activation)
appends exactly one event.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional
from uuid import uuid4

from domain.events import ContractEvent, ContractEventType
from domain.time import utc_now
from repositories.event_repository import EventRepository

logger = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, events: EventRepository) -> None:
        self._events = events

    def append(
        self,
        contract_id: str,
        event_type: ContractEventType,
        details: Optional[Mapping[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> ContractEvent:
        event = ContractEvent(
            event_id=uuid4(),
            contract_id=contract_id,
            event_type=event_type,
            created_at=utc_now(),
            actor=actor,
            details=dict(details or {}),
        )
        self._events.insert(event)
        logger.info(
            f"Contract event {event_type.value} for {contract_id}",
            extra={"contract_id": contract_id, "event_type": event_type.value, "actor": actor},
        )
        return event

    def history(self, contract_id: str) -> List[ContractEvent]:
        return self._events.list_for_contract(contract_id)


__all__ = ["AuditLog"]
