"""
Domain: onboarding saga step log.

The import writes several rows without a spanning transaction. Each
completed write is recorded as a step keyed by the contract correlation id,
so an import interrupted between the contract draft and the market-location
draft can be found and compensated later.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp


class SagaStepName(str, Enum):
    CONTRACT_DRAFT_CREATED = "CONTRACT_DRAFT_CREATED"
    MALO_DRAFT_CREATED = "MALO_DRAFT_CREATED"
    COMPLETED = "COMPLETED"
    COMPENSATED = "COMPENSATED"


@dataclass(frozen=True, slots=True)
class SagaStep:
    contract_id: str
    step: SagaStepName
    created_at: datetime
    entity_id: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
