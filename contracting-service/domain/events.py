"""
Domain: contract audit events.

Contract:
- Every state transition of a ContractDraft or MarketLocationDraft produces
  exactly one ContractEvent.
- Events are append-only; they are never updated or deleted.
- Events for a contract id are read back in creation order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from .time import require_utc_timestamp


class ContractEventType(str, Enum):
    DRAFT_CREATED = "DRAFT_CREATED"
    VALIDATION_PASSED = "VALIDATION_PASSED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    MANUAL_EDIT = "MANUAL_EDIT"
    ACTIVATED = "ACTIVATED"


@dataclass(frozen=True, slots=True)
class ContractEvent:
    event_id: UUID
    contract_id: str
    event_type: ContractEventType
    created_at: datetime
    actor: Optional[str] = None
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
