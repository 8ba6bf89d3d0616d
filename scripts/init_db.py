#!/usr/bin/env python3
"""Create the LeaveDesk schema and seed the system default leave types.

Intended for local development and CI databases; production schemas are
managed with Alembic (``alembic upgrade head``), which seeds the same types.

Usage:
    python -m scripts.init_db                # create tables + seed
    python -m scripts.init_db --seed-only    # tables already exist
    python -m scripts.init_db --drop         # drop everything first

Requires DATABASE_URL and JWT_SECRET in the environment or .env.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("init_db")

from leavedesk.database import Base, async_session_factory, engine  # noqa: E402
from leavedesk.leave.seed import seed_default_leave_types  # noqa: E402

import leavedesk.common.audit  # noqa: E402,F401
import leavedesk.holidays.models  # noqa: E402,F401
import leavedesk.leave.models  # noqa: E402,F401
import leavedesk.organizations.models  # noqa: E402,F401


async def run(*, drop: bool, seed_only: bool) -> None:
    if not seed_only:
        async with engine.begin() as conn:
            if drop:
                logger.warning("Dropping all tables")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready (%d tables)", len(Base.metadata.tables))

    async with async_session_factory() as session:
        created = await seed_default_leave_types(session)
        await session.commit()
    logger.info("Seeded leave types: %s", ", ".join(lt.code for lt in created) or "none")

    await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Create the LeaveDesk schema and seed data")
    parser.add_argument("--drop", action="store_true", help="drop all tables first")
    parser.add_argument("--seed-only", action="store_true", help="skip create_all")
    args = parser.parse_args()

    asyncio.run(run(drop=args.drop, seed_only=args.seed_only))


if __name__ == "__main__":
    main()
