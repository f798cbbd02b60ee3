"""
Compensate contract imports that were interrupted mid-way.

Finds imports whose saga log shows a contract draft but no market location
draft (the process died between the two writes) and removes the orphaned
draft. Runs against the store configured in contracting-service/.env.

Usage:
    python scripts/recover_imports.py              # imports older than 5 minutes
    python scripts/recover_imports.py --grace 0    # everything incomplete
"""

import argparse
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add parent directory to path so we can import from services
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.settings import load_settings
from services.factory import build_services


def recover_imports(grace_minutes: float) -> int:
    """Run recovery once and print the compensated contract ids."""

    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("RECOVERING INCOMPLETE IMPORTS")
    print("=" * 60)
    print(f"Store: {settings.store_backend} ({settings.environment})")
    print(f"Grace period: {grace_minutes} minutes")

    services = build_services(settings)
    try:
        recovered = services.onboarding.recover_incomplete_imports(grace=timedelta(minutes=grace_minutes))
    finally:
        services.shutdown()

    if not recovered:
        print("\nNo incomplete imports found.")
        return 0

    print(f"\n[SUCCESS] Compensated {len(recovered)} import(s):")
    for contract_id in recovered:
        print(f"  - {contract_id}")
    return len(recovered)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Compensate interrupted contract imports")
    parser.add_argument("--grace", type=float, default=5.0, help="Minimum age in minutes (default: 5)")
    args = parser.parse_args()
    recover_imports(args.grace)
