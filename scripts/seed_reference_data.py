"""Create missing tables and seed starter reference data."""
import asyncio

from app.database import get_db_session, init_db
from app.services.reference_seed import seed_reference_data


async def seed():
    """Seed modes, service types, distance/weight slabs, metro cities and state adjacency."""
    await init_db()
    async with get_db_session() as db:
        print("Seeding reference data...")
        created = await seed_reference_data(db)
        for table, count in created.items():
            print(f"  {table}: {count} created")
    print("Reference data seeded successfully!")


if __name__ == "__main__":
    asyncio.run(seed())
