"""
Tests for `services/activation_service.py`.

Covers activation rules:
- Only a draft whose market-location draft is APPROVED can be activated.
- Activation creates exactly one Contract and one FinalMarketLocation,
  even under concurrent confirmation.
- A repeated confirmation is rejected.
- A failed final write is rolled back and the draft can be retried.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import Decider, make_request
from domain.contract import CONTRACT_STATUS_ACTIVE, ChangeProcessStatus, DraftStatus
from domain.errors import (
    ActivationError,
    DraftAlreadyActiveError,
    DraftNotApprovedError,
    DraftNotFoundError,
    PersistenceError,
)
from domain.events import ContractEventType
from services.activation_service import ActivationCoordinator
from services.audit_log import AuditLog
from services.onboarding_service import OnboardingPipeline
from services.price_feed import StaticTariffPriceFeed
from services.verification_service import VerificationWorker


def _imported(stores, approve=True):
    result = OnboardingPipeline(stores, StaticTariffPriceFeed()).import_contract(make_request())
    if approve is not None:
        VerificationWorker(stores.drafts, AuditLog(stores.events), Decider(approve)).verify(result.draft_id)
    return result


def _coordinator(stores) -> ActivationCoordinator:
    return ActivationCoordinator(stores.drafts, stores.contracts, AuditLog(stores.events))


def test_confirm_switch_creates_final_records(stores, client) -> None:
    result = _imported(stores)
    draft = stores.drafts.get(result.draft_id)

    contract = _coordinator(stores).confirm_switch(result.draft_id, actor="ops:anna")

    final_malo = stores.contracts.get_final_malo_for_contract(contract.contract_uuid)
    events = stores.events.list_for_contract(result.contract_id)
    assert contract.contract_number == result.contract_id
    assert contract.status == CONTRACT_STATUS_ACTIVE
    assert contract.working_price_ct_kwh == Decimal("32.5000")
    assert contract.snapshot_id == draft.snapshot_id
    assert final_malo.market_location_id == "12345678901"
    assert final_malo.change_process_status is ChangeProcessStatus.IN_PROGRESS
    assert final_malo.score_accepted is True
    assert stores.drafts.get(result.draft_id).status is DraftStatus.ACTIVE
    assert events[-1].event_type is ContractEventType.ACTIVATED
    assert events[-1].actor == "ops:anna"
    assert len(client.rows("contracts")) == 1


@pytest.mark.parametrize("approve", [None, False])
def test_unapproved_draft_is_rejected(stores, client, approve) -> None:
    result = _imported(stores, approve=approve)

    with pytest.raises(DraftNotApprovedError):
        _coordinator(stores).confirm_switch(result.draft_id)

    assert stores.drafts.get(result.draft_id).status is DraftStatus.DRAFT
    assert client.rows("contracts") == []


def test_repeated_confirmation_is_rejected(stores, client) -> None:
    result = _imported(stores)
    coordinator = _coordinator(stores)
    coordinator.confirm_switch(result.draft_id)

    with pytest.raises(DraftAlreadyActiveError):
        coordinator.confirm_switch(result.draft_id)

    assert len(client.rows("contracts")) == 1
    activated = [
        e for e in stores.events.list_for_contract(result.contract_id) if e.event_type is ContractEventType.ACTIVATED
    ]
    assert len(activated) == 1


def test_concurrent_confirmation_has_one_winner(stores, client) -> None:
    """Verify parallel confirm_switch calls create exactly one contract."""

    result = _imported(stores)
    coordinator = _coordinator(stores)
    barrier = threading.Barrier(6)
    outcomes = []
    lock = threading.Lock()

    def confirm() -> None:
        barrier.wait()
        try:
            coordinator.confirm_switch(result.draft_id)
            outcome = "won"
        except DraftAlreadyActiveError:
            outcome = "lost"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=confirm) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["lost"] * 5 + ["won"]
    assert len(client.rows("contracts")) == 1
    assert len(client.rows("customer_malo")) == 1


def test_failed_final_write_is_rolled_back(stores, client, monkeypatch) -> None:
    result = _imported(stores)
    coordinator = _coordinator(stores)

    def failing_create_final_malo(final_malo):
        raise PersistenceError("Failed to create final market location: insert rejected")

    with monkeypatch.context() as patch:
        patch.setattr(stores.contracts, "create_final_malo", failing_create_final_malo)
        with pytest.raises(ActivationError):
            coordinator.confirm_switch(result.draft_id)

    assert client.rows("contracts") == []
    assert stores.drafts.get(result.draft_id).status is DraftStatus.DRAFT

    contract = coordinator.confirm_switch(result.draft_id)

    assert stores.contracts.get_by_number(result.contract_id) == contract


def test_unknown_draft_raises(stores) -> None:
    with pytest.raises(DraftNotFoundError):
        _coordinator(stores).confirm_switch(uuid4())


def test_draft_without_malo_raises(stores) -> None:
    result = _imported(stores)
    stores.drafts.delete_malo_for_draft(result.draft_id)

    with pytest.raises(DraftNotFoundError):
        _coordinator(stores).confirm_switch(result.draft_id)
