"""Initialize finance core tables, optionally with a demo project"""
import asyncio
import sys
from decimal import Decimal

from sqlalchemy import select

from finance_core.database import engine, Base, AsyncSessionLocal
from finance_core.models import Project, Supplier, Customer


async def seed_demo():
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Project).where(Project.project_number == "DEMO-001"))
        if result.scalar_one_or_none():
            print("Demo project already present.")
            return

        session.add_all([
            Project(
                name="Demo Fit-Out",
                project_number="DEMO-001",
                address="1 Demo Street, Singapore",
                contract_value=Decimal("200000.00"),
            ),
            Supplier(name="Acme Builders", contact_name="Alex Tan"),
            Customer(name="Demo Holdings"),
        ])
        await session.commit()
        print("Seeded demo project, supplier and customer.")


async def init(seed: bool = False):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created successfully.")

    if seed:
        await seed_demo()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init(seed="--seed" in sys.argv[1:]))
