"""
Webhook queue store.

Access contract over the webhook_queue table. Every call runs in its own
short transaction, so the store can be shared by concurrent workers and
no call leaves a transaction open across an HTTP delivery.
"""
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webhook_dlq.database import AsyncSessionLocal
from webhook_dlq.models.webhook import WebhookQueueEntry, WebhookStatus


def claimable(now: datetime) -> list:
    """Criteria for a pending entry that is due and not leased by another worker."""
    return [
        WebhookQueueEntry.status == WebhookStatus.PENDING_RETRY,
        WebhookQueueEntry.next_retry_at <= now,
        or_(
            WebhookQueueEntry.claimed_until.is_(None),
            WebhookQueueEntry.claimed_until <= now,
        ),
    ]


class WebhookQueueStore:
    """Persistent queue of webhook entries."""
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory
    
    async def create(self, entry: WebhookQueueEntry) -> WebhookQueueEntry:
        """Insert a new entry and return it with defaults populated."""
        async with self.session_factory() as db:
            db.add(entry)
            await db.commit()
            await db.refresh(entry)
            return entry
    
    async def find_unique(self, entry_id: str) -> WebhookQueueEntry | None:
        """Get entry by ID."""
        async with self.session_factory() as db:
            return await db.get(WebhookQueueEntry, entry_id)
    
    async def find_many(
        self,
        *criteria,
        order_by: Sequence[Any] = (),
        take: int | None = None
    ) -> list[WebhookQueueEntry]:
        """
        Get entries matching all criteria.
        
        Args:
            criteria: SQLAlchemy boolean expressions, ANDed together
            order_by: Columns or ordering expressions
            take: Maximum number of rows
            
        Returns:
            List of matching entries
        """
        stmt = select(WebhookQueueEntry).where(*criteria).order_by(*order_by)
        if take is not None:
            stmt = stmt.limit(take)
        
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())
    
    async def find_first(self, *criteria, order_by: Sequence[Any] = ()) -> WebhookQueueEntry | None:
        """Get the first entry matching all criteria, or None."""
        entries = await self.find_many(*criteria, order_by=order_by, take=1)
        return entries[0] if entries else None
    
    async def update(self, entry_id: str, *criteria, **patch) -> bool:
        """
        Apply a column patch to one entry in a single statement.
        
        Args:
            entry_id: Entry to patch
            criteria: Extra conditions the row must still meet (e.g. a held lease)
            patch: Column values
            
        Returns:
            True if the entry existed and met the criteria
        """
        stmt = (
            update(WebhookQueueEntry)
            .where(WebhookQueueEntry.id == entry_id, *criteria)
            .values(**patch)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount == 1
    
    async def claim(self, entry_id: str, now: datetime, lease_until: datetime) -> bool:
        """
        Lease a due entry for one delivery attempt.
        
        Conditional update: only succeeds while the entry is still pending,
        due and unleased, so two workers racing for the same entry see
        exactly one winner.
        
        Returns:
            True if this caller now owns the entry
        """
        stmt = (
            update(WebhookQueueEntry)
            .where(WebhookQueueEntry.id == entry_id, *claimable(now))
            .values(claimed_until=lease_until)
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount == 1
    
    async def delete(self, entry_id: str) -> bool:
        """Delete one entry. Returns True if it existed."""
        stmt = delete(WebhookQueueEntry).where(WebhookQueueEntry.id == entry_id)
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount == 1
    
    async def delete_many(self, *criteria) -> int:
        """Delete all entries matching the criteria. Returns the count deleted."""
        stmt = delete(WebhookQueueEntry).where(*criteria)
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            await db.commit()
            return result.rowcount
    
    async def count(self, *criteria) -> int:
        """Count entries matching the criteria."""
        stmt = select(func.count()).select_from(WebhookQueueEntry).where(*criteria)
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return result.scalar_one()
