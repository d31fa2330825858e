#!/usr/bin/env python3
"""CLI script to provision a new tenant.

Usage:
    python scripts/provision_tenant.py --slug green-acres --name "Green Acres" --owner user_2abc
    python scripts/provision_tenant.py --slug green-acres --name "Green Acres" --owner user_2abc --plan professional

Connects directly to the database using DATABASE_URL from environment or .env file.
Creates the tenant row and a farm_owner membership for the given
identity-provider subject.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import uuid

# Ensure project root is on sys.path so we can import src.herdbook
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

PLANS = ("free", "starter", "professional", "enterprise")


async def provision(slug: str, name: str, owner: str, plan: str, create_tables: bool) -> None:
    """Insert the tenant and its owner membership in one transaction."""
    from src.herdbook.config import get_settings
    from src.herdbook.core.database import Database
    from src.herdbook.models.shared import Tenant, TenantMember

    settings = get_settings()
    database = Database(settings.DATABASE_URL, pool_size=1, max_overflow=0)
    try:
        if create_tables:
            await database.create_all()

        async for session in database.session():
            tenant = Tenant(id=uuid.uuid4(), slug=slug, name=name, plan=plan)
            session.add(tenant)
            session.add(TenantMember(id=uuid.uuid4(), tenant_id=tenant.id, user_id=owner, role="farm_owner"))
            await session.commit()

            print("Tenant provisioned successfully:")
            print(f"  ID:    {tenant.id}")
            print(f"  Slug:  {tenant.slug}")
            print(f"  Name:  {tenant.name}")
            print(f"  Plan:  {tenant.plan}")
            print(f"  Owner: {owner}")
    finally:
        await database.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision a new tenant")
    parser.add_argument("--slug", required=True, help="Tenant slug (e.g., green-acres)")
    parser.add_argument("--name", required=True, help="Tenant display name")
    parser.add_argument("--owner", required=True, help="Identity-provider subject of the farm owner")
    parser.add_argument("--plan", default="free", choices=PLANS, help="Subscription plan")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables first (development only; use Alembic elsewhere)",
    )
    args = parser.parse_args()

    asyncio.run(provision(args.slug, args.name, args.owner, args.plan, args.create_tables))


if __name__ == "__main__":
    main()
