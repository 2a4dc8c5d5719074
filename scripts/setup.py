#!/usr/bin/env python3
"""Setup script for the health-tourism booking API.

Usage:
    python scripts/setup.py migrate   # apply Alembic migrations
    python scripts/setup.py seed      # load sample users and packages
    python scripts/setup.py all       # both, in that order
"""

import argparse
import asyncio
import logging
from datetime import date, timedelta
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from healthtour.core.database import async_session_factory, close_db
from healthtour.models import Package, User
from healthtour.schemas.package import CreatePackageRequest
from healthtour.services.package_service import PackageCatalogService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

db_dir = Path(__file__).parent.parent / "server" / "db"

SAMPLE_USERS = [
    {
        "first_name": "Ayse",
        "last_name": "Yilmaz",
        "email": "ayse.yilmaz@example.com",
        "phone": "+90 555 000 0001",
        "country": "Turkey",
        "role": "admin",
    },
    {
        "first_name": "Jonas",
        "last_name": "Berg",
        "email": "jonas.berg@example.com",
        "phone": "+49 151 0000 0002",
        "country": "Germany",
        "role": "user",
    },
]


def sample_packages() -> list[CreatePackageRequest]:
    today = date.today()
    return [
        CreatePackageRequest(
            title="Antalya Dental Makeover",
            description="Full dental assessment, veneers and whitening with a seaside recovery stay",
            category="dental-care",
            facility_name="Lara Dental Clinic",
            facility_type="clinic",
            location={"city": "Antalya", "country": "Turkey"},
            duration_days=7,
            duration_nights=6,
            base_price=250000,
            currency="EUR",
            meals="half-board",
            discounts=[{"type": "early-bird", "percentage": 10, "valid_until": today + timedelta(days=60)}],
            experience_types=["Treatment-Focused", "Close to Nature"],
            services=[
                {"name": "Airport Transfer", "included": True},
                {"name": "Teeth Whitening", "included": False, "additional_cost": 15000},
            ],
            tags=["veneers", "smile design"],
            max_capacity=12,
            is_featured=True,
        ),
        CreatePackageRequest(
            title="Istanbul Hair Transplant",
            description="FUE hair transplant with PRP sessions and city hotel accommodation",
            category="hair-transplant",
            facility_name="Bosphorus Hair Center",
            facility_type="hospital",
            location={"city": "Istanbul", "country": "Turkey"},
            duration_days=3,
            duration_nights=2,
            base_price=180000,
            currency="EUR",
            experience_types=["Quick Care"],
            services=[
                {"name": "PRP Session", "included": False, "additional_cost": 20000},
                {"name": "Translator", "included": True},
            ],
            tags=["fue", "prp"],
            max_capacity=20,
        ),
        CreatePackageRequest(
            title="Pamukkale Thermal Retreat",
            description="Two weeks of thermal spa therapy, physiotherapy and nutrition coaching",
            category="wellness-spa",
            facility_name="Pamukkale Thermal Resort",
            facility_type="spa",
            location={"city": "Denizli", "country": "Turkey"},
            duration_days=14,
            duration_nights=13,
            base_price=320000,
            currency="EUR",
            meals="full-board",
            discounts=[{"type": "group", "percentage": 15, "min_travelers": 4}],
            experience_types=["Relaxing (Wellness)", "Family-Friendly"],
            services=[{"name": "Physiotherapy", "included": True}],
            tags=["thermal", "spa"],
            max_capacity=30,
            is_featured=True,
        ),
    ]


def run_migrations() -> None:
    """Apply all Alembic migrations up to head."""
    alembic_cfg = Config(str(db_dir / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(db_dir / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data() -> None:
    """Create sample users and packages unless packages already exist."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = (await db.execute(select(func.count(Package.id)))).scalar_one()
        if existing > 0:
            logger.info("Sample data already exists, skipping...")
            return

        for user in SAMPLE_USERS:
            db.add(User(**user))
        await db.commit()

        package_service = PackageCatalogService(db)
        for request in sample_packages():
            package = await package_service.create_package(request)
            logger.info(f"Created package {package.title} ({package.id})")

    await close_db()
    logger.info("Sample data created successfully!")


def main() -> None:
    """Main setup function."""
    parser = argparse.ArgumentParser(description="Health-tourism booking API setup")
    parser.add_argument("action", choices=["migrate", "seed", "all"], help="Setup step to run")
    args = parser.parse_args()

    if args.action in ("migrate", "all"):
        run_migrations()

    if args.action in ("seed", "all"):
        asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: uvicorn healthtour.main:app --reload")


if __name__ == "__main__":
    main()
