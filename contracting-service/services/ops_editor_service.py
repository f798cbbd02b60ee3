"""
Operator corrections of market-location drafts.

Operators may fix supply-point data (market location id, meter number,
previous supplier, ...) captured by the funnel. Only whitelisted fields are
patchable, the verification status is never touched, and drafts whose
contract is already ACTIVE are frozen. Each successful edit appends one
MANUAL_EDIT event recording the actor, the patch and the old/new values.

Edits write only the patched columns, so a verification outcome recorded
while an operator is editing is kept. Concurrent operators are not
serialized; the last write of a field wins.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping
from uuid import UUID

from domain.contract import MarketLocationDraft
from domain.errors import DraftAlreadyActiveError, DraftNotFoundError
from domain.events import ContractEventType
from domain.time import parse_date
from repositories.contract_draft_repository import ContractDraftRepository
from services.audit_log import AuditLog

logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _coerce_patch(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Accept an ISO string for the change date, as sent by the ops console."""

    patch = dict(fields)
    value = patch.get("possible_supplier_change_date")
    if isinstance(value, str):
        patch["possible_supplier_change_date"] = parse_date(value)
    return patch


class OpsEditor:
    def __init__(self, drafts: ContractDraftRepository, audit: AuditLog) -> None:
        self._drafts = drafts
        self._audit = audit

    def update_malo_draft(
        self,
        malo_draft_id: UUID,
        fields: Mapping[str, Any],
        actor: str,
    ) -> MarketLocationDraft:
        """
        Patch a market-location draft.

        Args:
            malo_draft_id: MarketLocationDraft id
            fields: Column -> new value; keys must be editable fields
            actor: Operator identity recorded on the event

        Returns:
            The updated MarketLocationDraft

        Raises:
            FieldNotEditableError: empty patch or non-editable field
            DraftNotFoundError: no such market-location draft
            DraftAlreadyActiveError: the parent contract draft is ACTIVE
        """

        current = self._drafts.get_malo(malo_draft_id)
        if current is None:
            raise DraftNotFoundError(f"Market location draft not found: {malo_draft_id}")

        fields = _coerce_patch(fields)
        current.patched(fields)  # whitelist check

        parent = self._drafts.get(current.draft_id)
        if parent is None:
            raise DraftNotFoundError(f"Contract draft not found: {current.draft_id}")
        if parent.is_active:
            raise DraftAlreadyActiveError(
                f"Contract {parent.contract_id} is already active; market location data is frozen"
            )

        saved = self._drafts.update_malo_fields(malo_draft_id, fields)
        if saved is None:
            raise DraftNotFoundError(f"Market location draft not found: {malo_draft_id}")

        changes = {
            name: {"old": _json_value(getattr(current, name)), "new": _json_value(getattr(saved, name))}
            for name in sorted(fields)
        }
        self._audit.append(
            parent.contract_id,
            ContractEventType.MANUAL_EDIT,
            details={
                "malo_draft_id": str(malo_draft_id),
                "patch": {name: _json_value(value) for name, value in fields.items()},
                "changes": changes,
            },
            actor=actor,
        )
        logger.info(
            f"Market location draft {malo_draft_id} edited by {actor}",
            extra={"contract_id": parent.contract_id, "fields": sorted(fields)},
        )
        return saved


__all__ = ["OpsEditor"]
