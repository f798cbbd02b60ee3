"""
Contract event repository (persistence).

Append-only. Exposes insert and ordered read; there is deliberately no
update or delete.
"""

from __future__ import annotations

from typing import Any, List, Mapping
from uuid import UUID

from domain.events import ContractEvent, ContractEventType
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import StoreClient, execute

_EVENTS_TABLE: str = "contract_events"


def _row_to_event(row: Mapping[str, Any]) -> ContractEvent:
    return ContractEvent(
        event_id=UUID(str(row["event_id"])),
        contract_id=str(row["contract_id"]),
        event_type=ContractEventType(str(row["event_type"])),
        created_at=parse_utc_datetime(row["created_at"]),
        actor=row.get("actor"),
        details=dict(row.get("details") or {}),
    )


class EventRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def insert(self, event: ContractEvent) -> ContractEvent:
        payload: dict[str, Any] = {
            "event_id": str(event.event_id),
            "contract_id": event.contract_id,
            "event_type": event.event_type.value,
            "actor": event.actor,
            "details": dict(event.details),
            "created_at": to_iso_utc(event.created_at, name="created_at"),
        }
        execute(self._client.table(_EVENTS_TABLE).insert(payload), "append contract event")
        return event

    def list_for_contract(self, contract_id: str) -> List[ContractEvent]:
        """Events for `contract_id` in creation order (oldest first)."""

        rows = execute(
            self._client.table(_EVENTS_TABLE).select("*").eq("contract_id", contract_id).order("created_at"),
            "list contract events",
        )
        return [_row_to_event(row) for row in rows]


__all__ = ["EventRepository"]
