"""
Reference data for the in-process store.

Supabase deployments provision campaigns, margins and vouchers through
migrations. The in-process store starts empty, so mock mode and the
degraded fallback seed the same reference rows here.

Seeding is idempotent: rows that already exist (by campaign key, by
funnel/tariff type, by voucher code) are left alone.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import NAMESPACE_URL, uuid5

from domain.tariff import TariffType
from domain.time import utc_now, utc_today
from domain.voucher import DiscountType
from repositories.client import StoreClient, execute
from repositories.stores import Stores

logger = logging.getLogger(__name__)

# (campaign_key, name, tariff_type, working ct/kWh, base EUR/month)
DEFAULT_CAMPAIGNS: tuple[tuple[str, str, TariffType, str, str], ...] = (
    ("FIX12", "Fix 12", TariffType.STANDARD, "32.50", "11.90"),
    ("FIX24", "Fix 24", TariffType.STANDARD, "31.90", "11.90"),
    ("GREEN12", "Green 12", TariffType.GREEN, "33.90", "12.90"),
    ("DYN", "Dynamic", TariffType.DYNAMIC, "28.50", "14.90"),
)

# (funnel_id, tariff_type, working ct, base EUR)
DEMO_MARGINS: tuple[tuple[str, TariffType, str, str], ...] = (
    ("enfinitus-website", TariffType.STANDARD, "1.5", "2.0"),
    ("viet-energie-website", TariffType.STANDARD, "1.2", "1.8"),
)

WELCOME_VOUCHER_CODE = "WELCOME10"


def _campaign_id(campaign_key: str) -> str:
    return str(uuid5(NAMESPACE_URL, f"campaign:{campaign_key}"))


def seed_reference_data(client: StoreClient) -> None:
    """Insert the default campaigns, demo margins and the WELCOME10 voucher."""

    stores = Stores.for_client(client)

    for key, name, tariff_type, working, base in DEFAULT_CAMPAIGNS:
        if stores.campaigns.get_by_key(key) is not None:
            continue
        row: dict[str, Any] = {
            "campaign_id": _campaign_id(key),
            "campaign_key": key,
            "name": name,
            "tariff_type": tariff_type.value,
            "energy_price_ct_kwh": working,
            "base_price_eur_month": base,
            "created_at": utc_now().isoformat(),
        }
        execute(client.table("campaigns").insert(row), "seed campaign")

    for funnel_id, tariff_type, working, base in DEMO_MARGINS:
        if stores.margins.get(funnel_id, tariff_type) is None:
            stores.margins.upsert(funnel_id, tariff_type, Decimal(working), Decimal(base))

    if stores.vouchers.find_by_code(WELCOME_VOUCHER_CODE) is None:
        year = utc_today().year
        stores.vouchers.create(
            campaign_code=f"CAMP-{WELCOME_VOUCHER_CODE}-{year}",
            voucher_code=WELCOME_VOUCHER_CODE,
            start_date=date(year, 1, 1),
            end_date=date(year, 12, 31),
            discount_type=DiscountType.PERCENTAGE,
            discount_percent=Decimal("10"),
        )

    logger.info("Seeded reference data into in-process store")


__all__ = ["seed_reference_data", "DEFAULT_CAMPAIGNS", "DEMO_MARGINS", "WELCOME_VOUCHER_CODE"]
