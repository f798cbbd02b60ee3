"""
Verification job repository (persistence).

One row per detached verification run, so its progress and outcome can be
polled after the import request has returned.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID, uuid4

from domain.contract import VerificationStatus
from domain.time import parse_utc_datetime, utc_now
from domain.verification import JobStatus, VerificationJob
from repositories.client import StoreClient, execute

_JOBS_TABLE: str = "verification_jobs"


def _row_to_job(row: Mapping[str, Any]) -> VerificationJob:
    return VerificationJob(
        job_id=UUID(str(row["job_id"])),
        draft_id=UUID(str(row["draft_id"])),
        contract_id=str(row["contract_id"]),
        status=JobStatus(str(row["status"])),
        created_at=parse_utc_datetime(row["created_at"]),
        outcome=VerificationStatus(str(row["outcome"])) if row.get("outcome") else None,
        error=row.get("error"),
        finished_at=parse_utc_datetime(row["finished_at"]) if row.get("finished_at") else None,
    )


class VerificationJobRepository:
    def __init__(self, client: StoreClient) -> None:
        self._client = client

    def create(self, draft_id: UUID, contract_id: str) -> VerificationJob:
        payload: dict[str, Any] = {
            "job_id": str(uuid4()),
            "draft_id": str(draft_id),
            "contract_id": contract_id,
            "status": JobStatus.QUEUED.value,
            "outcome": None,
            "error": None,
            "created_at": utc_now().isoformat(),
            "finished_at": None,
        }
        execute(self._client.table(_JOBS_TABLE).insert(payload), "create verification job")
        return _row_to_job(payload)

    def get(self, job_id: UUID) -> Optional[VerificationJob]:
        rows = execute(
            self._client.table(_JOBS_TABLE).select("*").eq("job_id", str(job_id)).limit(1),
            "fetch verification job",
        )
        return _row_to_job(rows[0]) if rows else None

    def list_for_draft(self, draft_id: UUID) -> List[VerificationJob]:
        rows = execute(
            self._client.table(_JOBS_TABLE).select("*").eq("draft_id", str(draft_id)).order("created_at"),
            "list verification jobs",
        )
        return [_row_to_job(row) for row in rows]

    def transition(
        self,
        job_id: UUID,
        from_status: JobStatus,
        to_status: JobStatus,
        *,
        outcome: Optional[VerificationStatus] = None,
        error: Optional[str] = None,
    ) -> bool:
        """
        Move a job from `from_status` to `to_status` if it is still there.

        Returns:
            True if the row was updated
        """

        changes: dict[str, Any] = {"status": to_status.value}
        if outcome is not None:
            changes["outcome"] = outcome.value
        if error is not None:
            changes["error"] = error
        if to_status.is_finished:
            changes["finished_at"] = utc_now().isoformat()

        rows = execute(
            self._client.table(_JOBS_TABLE).update(changes).eq("job_id", str(job_id)).eq("status", from_status.value),
            "update verification job",
        )
        return bool(rows)


__all__ = ["VerificationJobRepository"]
