"""
Onboarding saga step log (persistence).

Append-only log of the writes an import has completed, keyed by contract
correlation id. Read by the recovery sweep to find imports that stopped
between the contract draft and the market-location draft.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from domain.saga import SagaStep, SagaStepName
from domain.time import parse_utc_datetime, utc_now
from repositories.client import StoreClient, execute

_SAGA_TABLE: str = "onboarding_saga_steps"


def _row_to_step(row: Mapping[str, Any]) -> SagaStep:
    return SagaStep(
        contract_id=str(row["contract_id"]),
        step=SagaStepName(str(row["step"])),
        created_at=parse_utc_datetime(row["created_at"]),
        entity_id=row.get("entity_id"),
    )


class SagaRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def record(self, contract_id: str, step: SagaStepName, entity_id: Optional[str] = None) -> SagaStep:
        payload: dict[str, Any] = {
            "contract_id": contract_id,
            "step": step.value,
            "entity_id": entity_id,
            "created_at": utc_now().isoformat(),
        }
        execute(self._client.table(_SAGA_TABLE).insert(payload), f"record saga step {step.value}")
        return _row_to_step(payload)

    def steps_for(self, contract_id: str) -> List[SagaStep]:
        rows = execute(
            self._client.table(_SAGA_TABLE).select("*").eq("contract_id", contract_id).order("created_at"),
            "list saga steps",
        )
        return [_row_to_step(row) for row in rows]

    def list_by_contract(self) -> Dict[str, List[SagaStep]]:
        """All recorded steps, grouped by contract id in creation order."""

        rows = execute(self._client.table(_SAGA_TABLE).select("*").order("created_at"), "list saga steps")
        grouped: Dict[str, List[SagaStep]] = defaultdict(list)
        for row in rows:
            step = _row_to_step(row)
            grouped[step.contract_id].append(step)
        return dict(grouped)


__all__ = ["SagaRepository"]
