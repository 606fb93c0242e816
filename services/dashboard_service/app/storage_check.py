# services/dashboard_service/app/storage_check.py
"""Setup-time diagnostics for the files bucket."""
import time
from typing import Optional

from core.config import settings, logger as core_logger
from core.errors import BucketMissing, BucketCheckFailed, StorageError
from core.models import StorageStatus, User
from core.storage import StorageClient

logger = core_logger.getChild("Dashboard").getChild("StorageCheck")


async def ensure_storage_bucket(store: StorageClient) -> bool:
    """Creates the private files bucket if it does not exist yet."""
    try:
        buckets = await store.list_buckets()
    except StorageError as e:
        raise BucketCheckFailed(f"Bucket check failed: {e.message}") from e

    if store.bucket_name in buckets:
        logger.info(f"Storage bucket '{store.bucket_name}' already exists.")
        return True

    logger.info(f"Storage bucket '{store.bucket_name}' not found, creating it.")
    try:
        await store.create_bucket(store.bucket_name, public=False, file_size_limit=settings.MAX_UPLOAD_SIZE_BYTES)
    except StorageError as e:
        raise BucketMissing(f"Could not create bucket '{store.bucket_name}': {e.message}") from e
    return True


async def check_storage_capabilities(store: StorageClient, user: Optional[User]) -> StorageStatus:
    """Probes bucket presence and list/upload/delete permissions. Never raises."""
    if user is None:
        return StorageStatus(error="User not authenticated")

    try:
        buckets = await store.list_buckets()
    except StorageError as e:
        return StorageStatus(error=f"Bucket check failed: {e.message}")

    if store.bucket_name not in buckets:
        return StorageStatus(error="Files bucket not found")

    status = StorageStatus(bucket_exists=True)

    try:
        await store.list_files(user.id, limit=1)
        status.can_list = True
    except StorageError as e:
        logger.warning(f"[{user.id}] List probe failed: {e.message}")

    test_path = f"{user.id}/test-{int(time.time() * 1000)}.txt"
    try:
        await store.upload(test_path, b"test", content_type="text/plain")
        status.can_upload = True
    except StorageError as e:
        status.error = f"Upload test failed: {e.message}"

    if status.can_upload:
        try:
            await store.remove([test_path])
            status.can_delete = True
        except StorageError as e:
            logger.warning(f"[{user.id}] Delete probe failed, '{test_path}' left behind: {e.message}")

    logger.info(f"[{user.id}] Storage status: {status.model_dump()}")
    return status
