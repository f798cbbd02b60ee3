"""
Wiring of the contracting services for one configuration.

build_services() is the single place that decides which store client,
price feed, decision policy and executor the services run with. The API
calls it once at startup; tests call it with an InMemoryClient and a
deterministic `decide`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional

from repositories.client import StoreClient, create_store_client
from repositories.memory_client import InMemoryClient
from repositories.seed import seed_reference_data
from repositories.settings import Settings
from repositories.stores import Stores
from services.activation_service import ActivationCoordinator
from services.audit_log import AuditLog
from services.onboarding_service import OnboardingPipeline
from services.ops_editor_service import OpsEditor
from services.ops_query_service import OpsQueryService
from services.price_feed import HttpTariffPriceFeed, StaticTariffPriceFeed, TariffPriceFeed
from services.verification_service import (
    DecisionFunction,
    RandomApprovalPolicy,
    VerificationDispatcher,
    VerificationWorker,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractingServices:
    settings: Settings
    stores: Stores
    fallback_stores: Optional[Stores]
    onboarding: OnboardingPipeline
    verifier: VerificationWorker
    dispatcher: VerificationDispatcher
    editor: OpsEditor
    activation: ActivationCoordinator
    queries: OpsQueryService

    def shutdown(self) -> None:
        self.dispatcher.shutdown(wait=True)


def build_price_feed(settings: Settings) -> TariffPriceFeed:
    if settings.price_feed_url:
        return HttpTariffPriceFeed(
            settings.price_feed_url,
            api_key=settings.price_feed_api_key,
            timeout_seconds=settings.price_feed_timeout,
        )
    logger.info("PRICE_FEED_URL not set; using reference upstream pricing")
    return StaticTariffPriceFeed()


def build_services(
    settings: Settings,
    *,
    client: Optional[StoreClient] = None,
    fallback_client: Optional[InMemoryClient] = None,
    price_feed: Optional[TariffPriceFeed] = None,
    decide: Optional[DecisionFunction] = None,
    executor: Optional[Executor] = None,
) -> ContractingServices:
    """
    Build every service over one primary store (and an optional fallback).

    Args:
        settings: Loaded configuration
        client: Primary store client; built from settings when omitted
        fallback_client: In-process store for degraded imports; created
            (and seeded) when the fallback is allowed and none is given
        price_feed: Upstream feed; built from settings when omitted
        decide: Verification decision; RandomApprovalPolicy when omitted
        executor: Executor for verification runs; a thread pool of
            VERIFICATION_WORKERS threads when omitted
    """

    primary_client = client if client is not None else create_store_client(settings)
    if isinstance(primary_client, InMemoryClient):
        seed_reference_data(primary_client)
    stores = Stores.for_client(primary_client)

    fallback_stores: Optional[Stores] = None
    if settings.allows_degraded_fallback and not settings.mock_mode:
        fallback = fallback_client if fallback_client is not None else InMemoryClient()
        seed_reference_data(fallback)
        fallback_stores = Stores.for_client(fallback)

    audit = AuditLog(stores.events)
    verifier = VerificationWorker(
        stores.drafts,
        audit,
        decide or RandomApprovalPolicy(settings.verification_approval_rate),
    )
    dispatcher = VerificationDispatcher(
        verifier,
        stores.jobs,
        executor=executor,
        max_workers=settings.verification_workers,
    )
    onboarding = OnboardingPipeline(
        stores,
        price_feed or build_price_feed(settings),
        dispatcher,
        fallback=fallback_stores,
        allow_fallback=settings.allows_degraded_fallback,
        mock_mode=settings.mock_mode,
    )

    return ContractingServices(
        settings=settings,
        stores=stores,
        fallback_stores=fallback_stores,
        onboarding=onboarding,
        verifier=verifier,
        dispatcher=dispatcher,
        editor=OpsEditor(stores.drafts, audit),
        activation=ActivationCoordinator(stores.drafts, stores.contracts, audit),
        queries=OpsQueryService(stores),
    )


__all__ = ["ContractingServices", "build_services", "build_price_feed"]
