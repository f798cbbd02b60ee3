"""
Pytest configuration for contracting-service tests.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules, and
provides fixtures that wire the services over the in-process store. No
network or database is needed.
"""

import sys
from concurrent.futures import Executor, Future
from datetime import date
from pathlib import Path

import httpx
import pytest

# Add the contracting-service directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.customer import CustomerDetails  # noqa: E402
from repositories.memory_client import InMemoryClient  # noqa: E402
from repositories.seed import seed_reference_data  # noqa: E402
from repositories.settings import Settings  # noqa: E402
from repositories.stores import Stores  # noqa: E402
from services.factory import build_services  # noqa: E402
from services.onboarding_service import ContractTerms, ImportRequest, MeterLocation  # noqa: E402
from services.price_feed import StaticTariffPriceFeed  # noqa: E402


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously in the caller's thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:  # surfaced through the future
            future.set_exception(e)
        return future


class ManualExecutor(Executor):
    """Queues submitted work until run_all() is called."""

    def __init__(self) -> None:
        self.pending = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)


class Decider:
    """Deterministic verification decision; flip `approve` per test."""

    def __init__(self, approve: bool = True) -> None:
        self.approve = approve
        self.calls = 0

    def __call__(self, draft) -> bool:
        self.calls += 1
        return self.approve


class _UnreachableQuery:
    def __getattr__(self, name):
        return lambda *args, **kwargs: self

    def execute(self):
        raise httpx.ConnectError("connection refused")


class UnreachableClient:
    """Store client whose every query fails at the transport layer."""

    def table(self, name):
        return _UnreachableQuery()


def make_settings(**overrides) -> Settings:
    values = dict(
        environment="development",
        store_backend="supabase",
        supabase_url="http://localhost:54321",
        supabase_key="test-key",
        degraded_fallback=False,
    )
    values.update(overrides)
    return Settings(**values)


def make_request(
    *,
    funnel_id: str = "enfinitus-website",
    email: str = "max@example.com",
    tariff_id: str = "standard-10115",
    zip_code: str = "10115",
    campaign_key=None,
    voucher_code=None,
    malo_id: str = "12345678901",
) -> ImportRequest:
    return ImportRequest(
        funnel_id=funnel_id,
        customer=CustomerDetails(
            email=email,
            first_name="Max",
            last_name="Mustermann",
            phone="+49301234567",
            street="Invalidenstrasse",
            house_number="1",
            zip_code=zip_code,
            city="Berlin",
        ),
        contract=ContractTerms(
            tariff_id=tariff_id,
            campaign_key=campaign_key,
            estimated_consumption_kwh=2500,
            desired_start_date=date(2030, 1, 1),
            iban="DE89370400440532013000",
            sepa_mandate=True,
            voucher_code=voucher_code,
        ),
        meter_location=MeterLocation(
            market_location_id=malo_id,
            has_own_msb=False,
            meter_number="1ESY1160000000",
            previous_provider_code="9900000000003",
            previous_annual_consumption=2400,
        ),
    )


@pytest.fixture
def client() -> InMemoryClient:
    memory = InMemoryClient()
    seed_reference_data(memory)
    return memory


@pytest.fixture
def stores(client: InMemoryClient) -> Stores:
    return Stores.for_client(client)


@pytest.fixture
def decider() -> Decider:
    return Decider(approve=True)


@pytest.fixture
def services(client: InMemoryClient, decider: Decider):
    built = build_services(
        make_settings(),
        client=client,
        price_feed=StaticTariffPriceFeed(),
        decide=decider,
        executor=ImmediateExecutor(),
    )
    yield built
    built.shutdown()
