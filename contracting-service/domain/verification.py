"""
Domain: verification jobs.

A verification job records one detached feasibility check of a contract
draft, so that completion and failure are observable by polling instead of
being visible only in logs.

    QUEUED -> RUNNING -> COMPLETED | FAILED
    QUEUED -> CANCELLED
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from .contract import VerificationStatus
from .time import require_utc_timestamp


class JobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


@dataclass(frozen=True, slots=True)
class VerificationJob:
    job_id: UUID
    draft_id: UUID
    contract_id: str
    status: JobStatus
    created_at: datetime
    outcome: Optional[VerificationStatus] = None
    error: Optional[str] = None
    finished_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.finished_at is not None:
            require_utc_timestamp("finished_at", self.finished_at)
