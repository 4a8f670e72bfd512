"""
Script to create the webhook queue table.

Creates all tables defined in the models directly from metadata.
Production deployments use the Alembic revision instead.
"""
import asyncio
from webhook_dlq.database import engine
from webhook_dlq.models.base import Base
from webhook_dlq.models.webhook import WebhookQueueEntry  # noqa: F401  (registers the table)


async def create_all_tables(bind=engine):
    """Create all tables in the database."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("All tables created successfully!")


async def drop_all_tables(bind=engine):
    """Drop all tables in the database (for testing)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    print("All tables dropped!")


async def main():
    """Main entry point."""
    print("Creating database tables...")
    await create_all_tables()
    print("Done!")


if __name__ == "__main__":
    asyncio.run(main())
