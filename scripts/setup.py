#!/usr/bin/env python3
"""Setup script for the trip booking API."""

import asyncio
import logging
import sys
from datetime import date, timedelta
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from tripbooking.core.config import settings
from tripbooking.core.database import async_session_factory, close_db
from tripbooking.models import Trip, User
from tripbooking.services.schedule_service import ScheduleService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Bring the database schema up to the latest migration."""
    logger.info("Setting up database...")

    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

    logger.info("Running database migrations...")
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create an administrator and a trip with weekly departures."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing_trips = (await db.execute(select(func.count()).select_from(Trip))).scalar_one()
            if existing_trips > 0:
                logger.info("Sample data already exists, skipping...")
                return

            admin_email = settings.fallback_admin_email or "admin@example.com"
            db.add(User(id="seed-admin", email=admin_email, full_name="Trip Admin", role="admin", roles=["admin"]))

            trip = Trip(
                title="Hampta Pass Trek",
                slug="hampta-pass-trek",
                location="Manali, Himachal Pradesh",
                description="Cross from the green Kullu valley into the stark Lahaul desert",
                price_per_person=1250000,  # ₹12,500
                currency=settings.currency,
                duration_days=5,
                max_seats=20,
                is_active=True,
            )
            db.add(trip)
            await db.flush()  # Get the trip ID

            base_date = date.today() + timedelta(days=30)
            for i in range(4):
                db.add(ScheduleService.build_schedule(trip, base_date + timedelta(days=i * 7)))

            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise

    await close_db()


def main():
    """Main setup function."""
    logger.info("Starting trip booking API setup...")

    try:
        setup_database()
    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        raise

    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn tripbooking.main:app --reload")


if __name__ == "__main__":
    main()
