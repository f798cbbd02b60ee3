"""
Tests for `services/verification_service.py`.

Covers verification rules:
- The outcome is written once; the market-location draft mirrors it
  (draft_status, score_accepted).
- Exactly one VALIDATION_PASSED or VALIDATION_FAILED event per draft.
- Drafts already decided are left untouched.
- An operator edit made while verification runs is not reverted.
- Each dispatched run is observable as a VerificationJob, including
  failures and cancellation.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from conftest import Decider, ImmediateExecutor, ManualExecutor, make_request
from domain.contract import VerificationStatus
from domain.errors import DraftNotFoundError
from domain.events import ContractEventType
from domain.verification import JobStatus
from services.audit_log import AuditLog
from services.onboarding_service import OnboardingPipeline
from services.ops_editor_service import OpsEditor
from services.price_feed import StaticTariffPriceFeed
from services.verification_service import (
    WORKER_ACTOR,
    RandomApprovalPolicy,
    VerificationDispatcher,
    VerificationWorker,
)


def _import(stores):
    return OnboardingPipeline(stores, StaticTariffPriceFeed()).import_contract(make_request())


def _worker(stores, approve: bool = True) -> VerificationWorker:
    return VerificationWorker(stores.drafts, AuditLog(stores.events), Decider(approve))


def _validation_events(stores, contract_id):
    return [
        e
        for e in stores.events.list_for_contract(contract_id)
        if e.event_type in (ContractEventType.VALIDATION_PASSED, ContractEventType.VALIDATION_FAILED)
    ]


@pytest.mark.parametrize(
    "approve, status, event_type",
    [
        (True, VerificationStatus.APPROVED, ContractEventType.VALIDATION_PASSED),
        (False, VerificationStatus.REJECTED, ContractEventType.VALIDATION_FAILED),
    ],
)
def test_verify_records_outcome(stores, approve, status, event_type) -> None:
    result = _import(stores)

    outcome = _worker(stores, approve).verify(result.draft_id)

    malo = stores.drafts.get_malo_for_draft(result.draft_id)
    events = _validation_events(stores, result.contract_id)
    assert outcome is status
    assert stores.drafts.get(result.draft_id).verification_status is status
    assert malo.draft_status is status
    assert malo.score_accepted is approve
    assert [e.event_type for e in events] == [event_type]
    assert events[0].actor == WORKER_ACTOR
    assert events[0].details["outcome"] == status.value


def test_second_verification_is_a_no_op(stores) -> None:
    result = _import(stores)
    _worker(stores, approve=True).verify(result.draft_id)

    rejecting = Decider(approve=False)
    outcome = VerificationWorker(stores.drafts, AuditLog(stores.events), rejecting).verify(result.draft_id)

    assert outcome is VerificationStatus.APPROVED
    assert rejecting.calls == 0
    assert len(_validation_events(stores, result.contract_id)) == 1


def test_verify_unknown_draft_raises(stores) -> None:
    with pytest.raises(DraftNotFoundError):
        _worker(stores).verify(uuid4())


def test_edit_landing_mid_verification_is_kept(stores, monkeypatch) -> None:
    result = _import(stores)
    malo = stores.drafts.get_malo_for_draft(result.draft_id)
    editor = OpsEditor(stores.drafts, AuditLog(stores.events))
    record = stores.drafts.record_verification

    def edit_then_record(draft_id, outcome):
        editor.update_malo_draft(malo.malo_draft_id, {"meter_number": "1ESY3330000000"}, actor="ops:anna")
        return record(draft_id, outcome)

    monkeypatch.setattr(stores.drafts, "record_verification", edit_then_record)
    outcome = _worker(stores, approve=True).verify(result.draft_id)
    monkeypatch.undo()

    stored = stores.drafts.get_malo(malo.malo_draft_id)
    assert outcome is VerificationStatus.APPROVED
    assert stored.meter_number == "1ESY3330000000"
    assert stored.draft_status is VerificationStatus.APPROVED
    assert stored.score_accepted is True
    assert [e.event_type for e in stores.events.list_for_contract(result.contract_id)] == [
        ContractEventType.DRAFT_CREATED,
        ContractEventType.MANUAL_EDIT,
        ContractEventType.VALIDATION_PASSED,
    ]


def test_dispatcher_completes_job(stores) -> None:
    result = _import(stores)
    dispatcher = VerificationDispatcher(_worker(stores), stores.jobs, executor=ImmediateExecutor())

    job = dispatcher.submit(result.draft_id, result.contract_id)
    finished = dispatcher.wait(job.job_id, timeout=1)

    assert finished.status is JobStatus.COMPLETED
    assert finished.outcome is VerificationStatus.APPROVED
    assert finished.finished_at is not None
    assert stores.jobs.list_for_draft(result.draft_id) == [finished]


def test_dispatcher_records_failed_run(stores) -> None:
    dispatcher = VerificationDispatcher(_worker(stores), stores.jobs, executor=ImmediateExecutor())
    missing = uuid4()

    job = dispatcher.submit(missing, "CONT-missing")
    failed = dispatcher.get_job(job.job_id)

    assert failed.status is JobStatus.FAILED
    assert "Contract draft not found" in failed.error
    assert failed.outcome is None


def test_queued_job_can_be_cancelled(stores) -> None:
    result = _import(stores)
    executor = ManualExecutor()
    decider = Decider()
    worker = VerificationWorker(stores.drafts, AuditLog(stores.events), decider)
    dispatcher = VerificationDispatcher(worker, stores.jobs, executor=executor)

    job = dispatcher.submit(result.draft_id, result.contract_id)
    assert dispatcher.get_job(job.job_id).status is JobStatus.QUEUED

    assert dispatcher.cancel(job.job_id)
    executor.run_all()

    assert dispatcher.get_job(job.job_id).status is JobStatus.CANCELLED
    assert decider.calls == 0
    assert stores.drafts.get(result.draft_id).verification_status is VerificationStatus.PENDING


def test_finished_job_cannot_be_cancelled(stores) -> None:
    result = _import(stores)
    dispatcher = VerificationDispatcher(_worker(stores), stores.jobs, executor=ImmediateExecutor())

    job = dispatcher.submit(result.draft_id, result.contract_id)

    assert not dispatcher.cancel(job.job_id)
    assert dispatcher.get_job(job.job_id).status is JobStatus.COMPLETED


def test_thread_pool_dispatcher(stores) -> None:
    result = _import(stores)
    dispatcher = VerificationDispatcher(_worker(stores), stores.jobs, max_workers=2)
    try:
        job = dispatcher.submit(result.draft_id, result.contract_id)
        finished = dispatcher.wait(job.job_id, timeout=5)
    finally:
        dispatcher.shutdown()

    assert finished.status is JobStatus.COMPLETED


def test_random_policy_is_reproducible_with_seed() -> None:
    first = RandomApprovalPolicy(0.5, seed=7)
    second = RandomApprovalPolicy(0.5, seed=7)

    assert [first(None) for _ in range(20)] == [second(None) for _ in range(20)]
    assert all(RandomApprovalPolicy(1.0)(None) for _ in range(10))
    assert not any(RandomApprovalPolicy(0.0)(None) for _ in range(10))


def test_random_policy_rejects_invalid_rate() -> None:
    with pytest.raises(ValueError):
        RandomApprovalPolicy(1.2)
