import asyncio
import os
import sys

# Add backend to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.models.database import init_db
from app.models import User, Call  # noqa: F401  (registers the tables)


async def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    print("Tables to create:")
    print("  - users")
    print("  - calls")

    await init_db()

    print("✅ All tables created successfully!")


if __name__ == "__main__":
    asyncio.run(create_tables())
