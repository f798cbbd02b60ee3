"""
Repository bundle bound to one store client.

The onboarding pipeline may switch to the degraded fallback store mid
request; keeping every repository for one client together makes that a
single swap.
"""

from __future__ import annotations

from dataclasses import dataclass

from repositories.campaign_repository import CampaignRepository
from repositories.client import StoreClient
from repositories.contract_draft_repository import ContractDraftRepository
from repositories.contract_repository import ContractRepository
from repositories.customer_repository import CustomerRepository
from repositories.event_repository import EventRepository
from repositories.margin_repository import MarginRepository
from repositories.saga_repository import SagaRepository
from repositories.snapshot_repository import SnapshotStore
from repositories.verification_job_repository import VerificationJobRepository
from repositories.voucher_repository import VoucherRepository


@dataclass(frozen=True)
class Stores:
    client: StoreClient
    customers: CustomerRepository
    campaigns: CampaignRepository
    vouchers: VoucherRepository
    margins: MarginRepository
    snapshots: SnapshotStore
    drafts: ContractDraftRepository
    contracts: ContractRepository
    events: EventRepository
    jobs: VerificationJobRepository
    saga: SagaRepository

    @classmethod
    def for_client(cls, client: StoreClient) -> "Stores":
        return cls(
            client=client,
            customers=CustomerRepository(client),
            campaigns=CampaignRepository(client),
            vouchers=VoucherRepository(client),
            margins=MarginRepository(client),
            snapshots=SnapshotStore(client),
            drafts=ContractDraftRepository(client),
            contracts=ContractRepository(client),
            events=EventRepository(client),
            jobs=VerificationJobRepository(client),
            saga=SagaRepository(client),
        )


__all__ = ["Stores"]
