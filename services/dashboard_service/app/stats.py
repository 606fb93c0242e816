# services/dashboard_service/app/stats.py
import datetime
from typing import Iterable, Optional

from core.config import settings, logger as core_logger
from core.errors import NotAuthenticated, LoadFailed, StorageError
from core.models import FileRecord, StorageUsage, CategoryUsage, User
from core.storage import StorageClient

logger = core_logger.getChild("Dashboard").getChild("Stats")


def aggregate_usage(records: Iterable[FileRecord], now: Optional[datetime.datetime] = None,
                    quota_bytes: int = settings.STORAGE_QUOTA_BYTES,
                    recent_days: int = settings.RECENT_UPLOAD_DAYS) -> StorageUsage:
    """Reduces a snapshot to totals, per-category usage and the recent-upload count."""
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    cutoff = _as_aware(now) - datetime.timedelta(days=recent_days)

    usage = StorageUsage(quota_bytes=quota_bytes)
    for record in records:
        size = record.size_bytes or 0
        usage.total_files += 1
        usage.total_size += size
        # Strictly newer than the cutoff; exactly `recent_days` old is not recent
        if record.updated_at is not None and _as_aware(record.updated_at) > cutoff:
            usage.recent_uploads += 1
        bucket = usage.by_category.setdefault(record.category, CategoryUsage())
        bucket.count += 1
        bucket.total_size += size
    return usage


def _as_aware(value: datetime.datetime) -> datetime.datetime:
    # Supabase timestamps are UTC; naive values are treated the same way
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


async def load_storage_usage(store: StorageClient, user: Optional[User],
                             now: Optional[datetime.datetime] = None) -> StorageUsage:
    """Lists the user's files (up to STATS_LIST_LIMIT) and aggregates them."""
    if user is None:
        raise NotAuthenticated()
    try:
        records = await store.list_files(user.id, limit=settings.STATS_LIST_LIMIT, offset=0, sort_column=None)
    except StorageError as e:
        logger.error(f"[{user.id}] Failed to load storage stats: {e.message}")
        raise LoadFailed(e.message) from e
    owned = [r for r in records if r.owner_id == user.id]
    usage = aggregate_usage(owned, now=now)
    logger.info(f"[{user.id}] Storage usage: {usage.total_files} file(s), {usage.total_size} bytes.")
    return usage
