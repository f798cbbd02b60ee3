"""
Tests for `services/ops_editor_service.py`.

Covers edit rules:
- Only whitelisted market-location fields are patchable.
- The verification status is never changed by an edit.
- Edits after activation are rejected.
- Each successful edit appends one MANUAL_EDIT event with old/new values.
"""

from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest

from conftest import Decider, make_request
from domain.contract import VerificationStatus
from domain.errors import DraftAlreadyActiveError, DraftNotFoundError, FieldNotEditableError
from domain.events import ContractEventType
from services.activation_service import ActivationCoordinator
from services.audit_log import AuditLog
from services.onboarding_service import OnboardingPipeline
from services.ops_editor_service import OpsEditor
from services.price_feed import StaticTariffPriceFeed
from services.verification_service import VerificationWorker


def _imported(stores):
    result = OnboardingPipeline(stores, StaticTariffPriceFeed()).import_contract(make_request())
    return result, stores.drafts.get_malo_for_draft(result.draft_id)


def _editor(stores) -> OpsEditor:
    return OpsEditor(stores.drafts, AuditLog(stores.events))


def _edits(stores, contract_id):
    return [e for e in stores.events.list_for_contract(contract_id) if e.event_type is ContractEventType.MANUAL_EDIT]


def test_edit_updates_fields_and_appends_event(stores) -> None:
    result, malo = _imported(stores)

    saved = _editor(stores).update_malo_draft(
        malo.malo_draft_id,
        {"meter_number": "1ESY999", "previous_annual_consumption": 3100},
        actor="ops:anna",
    )

    (event,) = _edits(stores, result.contract_id)
    assert saved.meter_number == "1ESY999"
    assert stores.drafts.get_malo(malo.malo_draft_id).previous_annual_consumption == 3100
    assert event.actor == "ops:anna"
    assert event.details["malo_draft_id"] == str(malo.malo_draft_id)
    assert event.details["changes"]["meter_number"] == {"old": "1ESY1160000000", "new": "1ESY999"}
    assert event.details["patch"] == {"meter_number": "1ESY999", "previous_annual_consumption": 3100}


def test_edit_accepts_iso_change_date(stores) -> None:
    _, malo = _imported(stores)

    saved = _editor(stores).update_malo_draft(
        malo.malo_draft_id, {"possible_supplier_change_date": "2030-02-01"}, actor="ops"
    )

    assert saved.possible_supplier_change_date == date(2030, 2, 1)


def test_edit_keeps_verification_status(stores) -> None:
    result, malo = _imported(stores)
    VerificationWorker(stores.drafts, AuditLog(stores.events), Decider(approve=True)).verify(result.draft_id)

    saved = _editor(stores).update_malo_draft(malo.malo_draft_id, {"has_own_msb": True}, actor="ops")

    assert saved.has_own_msb is True
    assert saved.draft_status is VerificationStatus.APPROVED
    assert saved.score_accepted is True


@pytest.mark.parametrize("fields", [{}, {"draft_status": "APPROVED"}, {"score_accepted": False}, {"customer_id": "x"}])
def test_protected_fields_are_rejected(stores, fields) -> None:
    result, malo = _imported(stores)

    with pytest.raises(FieldNotEditableError):
        _editor(stores).update_malo_draft(malo.malo_draft_id, fields, actor="ops")

    assert _edits(stores, result.contract_id) == []
    assert stores.drafts.get_malo(malo.malo_draft_id).draft_status is VerificationStatus.PENDING


def test_unknown_malo_draft_raises(stores) -> None:
    with pytest.raises(DraftNotFoundError):
        _editor(stores).update_malo_draft(uuid4(), {"meter_number": "x"}, actor="ops")


def test_edit_after_activation_is_rejected(stores) -> None:
    result, malo = _imported(stores)
    audit = AuditLog(stores.events)
    VerificationWorker(stores.drafts, audit, Decider(approve=True)).verify(result.draft_id)
    ActivationCoordinator(stores.drafts, stores.contracts, audit).confirm_switch(result.draft_id, actor="ops")

    with pytest.raises(DraftAlreadyActiveError):
        _editor(stores).update_malo_draft(malo.malo_draft_id, {"meter_number": "late"}, actor="ops")

    assert stores.drafts.get_malo(malo.malo_draft_id).meter_number == "1ESY1160000000"
    assert _edits(stores, result.contract_id) == []


def test_verification_landing_mid_edit_is_kept(stores, monkeypatch) -> None:
    """An outcome written between the editor's read and write survives the edit."""

    result, malo = _imported(stores)
    worker = VerificationWorker(stores.drafts, AuditLog(stores.events), Decider(approve=True))
    read = stores.drafts.get_malo

    def read_then_verify(malo_draft_id):
        current = read(malo_draft_id)
        worker.verify(result.draft_id)
        return current

    monkeypatch.setattr(stores.drafts, "get_malo", read_then_verify)
    saved = _editor(stores).update_malo_draft(malo.malo_draft_id, {"meter_number": "1ESY3330000000"}, actor="ops")
    monkeypatch.undo()

    stored = stores.drafts.get_malo(malo.malo_draft_id)
    assert saved.draft_status is VerificationStatus.APPROVED
    assert stored.draft_status is VerificationStatus.APPROVED
    assert stored.score_accepted is True
    assert stored.meter_number == "1ESY3330000000"
