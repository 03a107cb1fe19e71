#!/usr/bin/env python3
"""
Partner school seed data
========================

Creates the partner schools of the current alliance term. Schools that
already exist (matched by short name) are left untouched, so the script can
be re-run safely.

Usage:
    python scripts/seed_partner_schools.py            # seed the configured DATABASE_URL
    python scripts/seed_partner_schools.py --list     # print what would be seeded

Requirements:
    Run from the backend/ directory (or set PYTHONPATH).
"""

import argparse
import asyncio
import sys
from pathlib import Path

# ── Ensure we can import project modules ────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy import select  # noqa: E402

from database import AsyncSessionLocal, close_db, init_db  # noqa: E402
from models import PartnerPlan, PartnerSchool  # noqa: E402
from utils.logging_utils import get_logger, setup_logging  # noqa: E402

logger = get_logger("seed_partner_schools")

PARTNER_SCHOOLS = [
    {"short_name": "文山高中", "full_name": "高雄市立文山高級中學", "plan": PartnerPlan.Combined},
    {"short_name": "三民高中", "full_name": "高雄市立三民高級中學", "plan": PartnerPlan.Personal},
    {"short_name": "左營高中", "full_name": "高雄市立左營高級中學", "plan": PartnerPlan.GroupA},
    {"short_name": "前鎮高中", "full_name": "高雄市立前鎮高級中學", "plan": PartnerPlan.Personal},
    {"short_name": "仁武高中", "full_name": "高雄市立仁武高級中學", "plan": PartnerPlan.Combined},
    {"short_name": "林園高中", "full_name": "高雄市立林園高級中學", "plan": PartnerPlan.Combined},
]


async def seed_partner_schools(session_factory=AsyncSessionLocal) -> int:
    """Insert missing partner schools. Returns the number of rows created."""
    created = 0
    async with session_factory() as db:
        result = await db.execute(select(PartnerSchool.short_name))
        existing = set(result.scalars().all())

        for school in PARTNER_SCHOOLS:
            if school["short_name"] in existing:
                logger.debug(f"Skipping existing school {school['short_name']}")
                continue
            db.add(PartnerSchool(**school))
            created += 1

        await db.commit()
    return created


async def _main(list_only: bool) -> int:
    if list_only:
        for school in PARTNER_SCHOOLS:
            print(f"{school['short_name']}\t{school['full_name']}\t{school['plan'].value}")
        return 0

    await init_db()
    try:
        created = await seed_partner_schools()
    finally:
        await close_db()
    logger.info(f"Seeded {created} partner school(s)")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed partner schools")
    parser.add_argument("--list", action="store_true", help="print the seed data and exit")
    args = parser.parse_args()

    setup_logging(level="INFO")
    return asyncio.run(_main(args.list))


if __name__ == "__main__":
    sys.exit(main())
