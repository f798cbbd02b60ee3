"""
Activation service: confirms the supplier switch for an approved draft.

Flow (confirm_switch):
1. Load the contract draft and its market-location draft
2. Reject if the draft is already ACTIVE or the market-location draft is
   not APPROVED
3. Claim the draft with a conditional DRAFT -> ACTIVE update; a concurrent
   or repeated call loses the claim and gets DraftAlreadyActiveError
4. Create the final Contract (status "active", same snapshot and voucher)
5. Create the FinalMarketLocation (change process IN_PROGRESS)
6. Append ACTIVATED

If step 4 or 5 fails, rows created so far are deleted, the claim is
reverted and ActivationError is raised.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID, uuid4

from domain.contract import Contract, ContractDraft, FinalMarketLocation, MarketLocationDraft
from domain.errors import (
    ActivationError,
    ContractingError,
    DraftAlreadyActiveError,
    DraftNotApprovedError,
    DraftNotFoundError,
)
from domain.events import ContractEventType
from domain.time import utc_now
from repositories.contract_draft_repository import ContractDraftRepository
from repositories.contract_repository import ContractRepository
from services.audit_log import AuditLog

logger = logging.getLogger(__name__)


class ActivationCoordinator:
    def __init__(
        self,
        drafts: ContractDraftRepository,
        contracts: ContractRepository,
        audit: AuditLog,
    ) -> None:
        self._drafts = drafts
        self._contracts = contracts
        self._audit = audit

    def confirm_switch(self, draft_id: UUID, actor: Optional[str] = None) -> Contract:
        """
        Promote an approved contract draft into a final contract.

        Args:
            draft_id: ContractDraft id (not the market-location draft id)
            actor: Operator identity recorded on the event

        Returns:
            The created Contract

        Raises:
            DraftNotFoundError: no such draft, or it has no market-location draft
            DraftAlreadyActiveError: the draft was already activated
            DraftNotApprovedError: market-location draft is not APPROVED
            ActivationError: writing the final records failed (rolled back)
        """

        draft = self._drafts.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(f"Contract draft not found: {draft_id}")
        if draft.is_active:
            raise DraftAlreadyActiveError(f"Contract {draft.contract_id} is already active")

        malo = self._drafts.get_malo_for_draft(draft_id)
        if malo is None:
            raise DraftNotFoundError(f"No market location draft for contract {draft.contract_id}")
        malo.ensure_approved()

        if not self._drafts.claim_activation(draft_id):
            raise DraftAlreadyActiveError(f"Contract {draft.contract_id} is already active")

        contract = self._write_final_records(draft.activated(), malo)

        self._audit.append(
            draft.contract_id,
            ContractEventType.ACTIVATED,
            details={
                "draft_id": str(draft_id),
                "contract_uuid": str(contract.contract_uuid),
                "malo_draft_id": str(malo.malo_draft_id),
            },
            actor=actor,
        )
        logger.info(f"Switch confirmed for {draft.contract_id}", extra={"contract_id": draft.contract_id})
        return contract

    def _write_final_records(self, draft: ContractDraft, malo: MarketLocationDraft) -> Contract:
        now = utc_now()
        contract = Contract(
            contract_uuid=uuid4(),
            contract_number=draft.contract_id,
            draft_id=draft.draft_id,
            customer_id=draft.customer_id,
            funnel_id=draft.funnel_id,
            working_price_ct_kwh=draft.working_price_ct_kwh,
            base_price_eur_month=draft.base_price_eur_month,
            start_date=draft.desired_start_date,
            created_at=now,
            snapshot_id=draft.snapshot_id,
            voucher_id=draft.voucher_id,
        )
        final_malo = FinalMarketLocation(
            final_malo_id=uuid4(),
            contract_uuid=contract.contract_uuid,
            draft_id=draft.draft_id,
            customer_id=draft.customer_id,
            funnel_id=draft.funnel_id,
            market_location_id=malo.market_location_id,
            has_own_msb=malo.has_own_msb,
            meter_number=malo.meter_number,
            previous_provider_code=malo.previous_provider_code,
            previous_annual_consumption=malo.previous_annual_consumption,
            possible_supplier_change_date=malo.possible_supplier_change_date,
            score_accepted=malo.score_accepted,
            created_at=now,
        )

        contract_written = False
        try:
            self._contracts.create(contract)
            contract_written = True
            self._contracts.create_final_malo(final_malo)
        except ContractingError as e:
            logger.error(f"Activation failed for {draft.contract_id}: {e.message}")
            self._roll_back(draft, contract if contract_written else None)
            raise ActivationError(
                f"Failed to activate contract {draft.contract_id}: {e.message}",
                contract_id=draft.contract_id,
            ) from e

        return contract

    def _roll_back(self, draft: ContractDraft, contract: Optional[Contract]) -> None:
        try:
            if contract is not None:
                self._contracts.delete(contract.contract_uuid)
            self._drafts.release_activation(draft.draft_id)
        except ContractingError:
            logger.exception(f"Rollback of activation failed for {draft.contract_id}")


__all__ = ["ActivationCoordinator"]
