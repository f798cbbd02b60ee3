"""
Verification service (detached feasibility / credit check).

VerificationWorker decides a single contract draft:

1. Load the draft; drafts no longer PENDING are left untouched
2. Ask the decision function (approve / reject)
3. Write the outcome on the draft (conditional on PENDING, so a second
   concurrent run cannot write it again)
4. Mirror the outcome onto the market-location draft
   (draft_status, score_accepted)
5. Append VALIDATION_PASSED or VALIDATION_FAILED

Steps 3-5 are independent writes; a crash between them leaves the draft
decided without the mirrored market-location status or the event.

VerificationDispatcher runs the worker off the request path on a
concurrent.futures executor and persists one VerificationJob per run, so
completion, failure and cancellation can be observed by polling.
"""

from __future__ import annotations

import logging
import random
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Callable, Dict, Optional
from uuid import UUID

from domain.contract import ContractDraft, VerificationStatus
from domain.errors import DraftNotFoundError
from domain.events import ContractEventType
from domain.verification import JobStatus, VerificationJob
from repositories.contract_draft_repository import ContractDraftRepository
from repositories.verification_job_repository import VerificationJobRepository
from services.audit_log import AuditLog

logger = logging.getLogger(__name__)

DecisionFunction = Callable[[ContractDraft], bool]

WORKER_ACTOR = "verification-worker"


class RandomApprovalPolicy:
    """
    Stand-in for the external credit and market-location checks.

    Approves roughly `approval_rate` of drafts. Pass `seed` for a
    reproducible sequence.
    """

    def __init__(self, approval_rate: float = 0.9, seed: Optional[int] = None) -> None:
        if not 0.0 <= approval_rate <= 1.0:
            raise ValueError("approval_rate must be between 0 and 1")
        self.approval_rate = approval_rate
        self._random = random.Random(seed)

    def __call__(self, draft: ContractDraft) -> bool:
        return self._random.random() < self.approval_rate


class VerificationWorker:
    def __init__(
        self,
        drafts: ContractDraftRepository,
        audit: AuditLog,
        decide: Optional[DecisionFunction] = None,
    ) -> None:
        self._drafts = drafts
        self._audit = audit
        self._decide = decide or RandomApprovalPolicy()

    def verify(self, draft_id: UUID) -> VerificationStatus:
        """
        Decide one contract draft.

        Returns:
            The draft's verification status after this call

        Raises:
            DraftNotFoundError: no draft with this id
        """

        draft = self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(f"Contract draft not found: {draft_id}")

        if draft.verification_status is not VerificationStatus.PENDING:
            logger.info(
                f"Draft {draft.contract_id} already verified ({draft.verification_status.value}); skipping"
            )
            return draft.verification_status

        approved = bool(self._decide(draft))
        decided = draft.verified(approved)

        if not self._drafts.record_verification(draft_id, decided.verification_status):
            current = self._drafts.get(draft_id)
            logger.info(f"Draft {draft.contract_id} was verified concurrently; skipping")
            return current.verification_status if current else decided.verification_status

        if not self._drafts.record_malo_outcome(draft_id, decided.verification_status, approved):
            logger.warning(f"Draft {draft.contract_id} has no market location draft to update")

        event_type = ContractEventType.VALIDATION_PASSED if approved else ContractEventType.VALIDATION_FAILED
        self._audit.append(
            draft.contract_id,
            event_type,
            details={
                "draft_id": str(draft_id),
                "outcome": decided.verification_status.value,
                "score_accepted": approved,
            },
            actor=WORKER_ACTOR,
        )

        logger.info(f"Draft {draft.contract_id} verified: {decided.verification_status.value}")
        return decided.verification_status


class VerificationDispatcher:
    def __init__(
        self,
        worker: VerificationWorker,
        jobs: VerificationJobRepository,
        executor: Optional[Executor] = None,
        max_workers: int = 4,
    ) -> None:
        self._worker = worker
        self._jobs = jobs
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="verification"
        )
        self._futures: Dict[UUID, Future] = {}
        self._lock = threading.Lock()

    def submit(self, draft_id: UUID, contract_id: str) -> VerificationJob:
        """Persist a QUEUED job and schedule the worker for it."""

        job = self._jobs.create(draft_id, contract_id)
        future = self._executor.submit(self._run, job.job_id, draft_id)
        with self._lock:
            self._futures[job.job_id] = future
        future.add_done_callback(lambda _f, job_id=job.job_id: self._forget(job_id))
        logger.info(f"Verification job {job.job_id} queued for {contract_id}")
        return job

    def get_job(self, job_id: UUID) -> Optional[VerificationJob]:
        return self._jobs.get(job_id)

    def wait(self, job_id: UUID, timeout: Optional[float] = None) -> Optional[VerificationJob]:
        """Block until the job's run finishes (or `timeout`), then return its row."""

        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            wait_futures([future], timeout=timeout)
        return self._jobs.get(job_id)

    def cancel(self, job_id: UUID) -> bool:
        """
        Cancel a job that has not started yet.

        Returns:
            True if the job moved QUEUED -> CANCELLED
        """

        cancelled = self._jobs.transition(job_id, JobStatus.QUEUED, JobStatus.CANCELLED)
        if cancelled:
            with self._lock:
                future = self._futures.get(job_id)
            if future is not None:
                future.cancel()
            logger.info(f"Verification job {job_id} cancelled")
        return cancelled

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _forget(self, job_id: UUID) -> None:
        with self._lock:
            self._futures.pop(job_id, None)

    def _run(self, job_id: UUID, draft_id: UUID) -> Optional[VerificationStatus]:
        if not self._jobs.transition(job_id, JobStatus.QUEUED, JobStatus.RUNNING):
            logger.info(f"Verification job {job_id} no longer queued; not running")
            return None

        try:
            outcome = self._worker.verify(draft_id)
        except Exception as e:
            logger.exception(f"Verification job {job_id} failed for draft {draft_id}")
            self._jobs.transition(job_id, JobStatus.RUNNING, JobStatus.FAILED, error=str(e))
            raise

        self._jobs.transition(job_id, JobStatus.RUNNING, JobStatus.COMPLETED, outcome=outcome)
        return outcome


__all__ = [
    "DecisionFunction",
    "RandomApprovalPolicy",
    "VerificationWorker",
    "VerificationDispatcher",
]
