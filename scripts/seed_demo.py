"""Seed script for a demo database.

Run with:
    python scripts/seed_demo.py

Creates the schema, the default statutory rates, this year's fixed public
holidays and one demo employee per classification.
"""

from __future__ import annotations

import asyncio
from datetime import date

from antigua_payroll.database import create_schema, dispose_db, get_session
from antigua_payroll.seed import seed_demo_employees, seed_holidays, seed_settings


async def main():
    """Run seed script."""
    print("Seeding demo data...")
    await create_schema()

    async with get_session() as session:
        settings = await seed_settings(session)
        print(f"Rate settings effective {settings.effective_date}")
        added = await seed_holidays(session, date.today().year)
        print(f"Added {added} public holidays")
        employees = await seed_demo_employees(session)
        for employee in employees:
            print(f"Created {employee.employee_id} ({employee.classification})")

    await dispose_db()
    print("\nDone! Demo data seeded successfully.")


if __name__ == "__main__":
    asyncio.run(main())
