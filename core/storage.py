# core/storage.py
"""
Core Storage Utilities.

`StorageClient` centralizes every call the dashboard makes against Supabase
Storage for the files bucket. The Supabase SDK is synchronous, so each call is
run in a worker thread. Any failure is logged and re-raised as
`core.errors.StorageError` carrying the upstream message.
"""
import asyncio
import mimetypes
from typing import Any, Dict, List, Optional, Tuple

from storage3.utils import StorageException

from core.config import settings, logger as core_logger
from core.errors import StorageError
from core.models import FileRecord
from core.supabase_client import FILES_BUCKET

logger = core_logger.getChild("Storage")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def _describe_error(exc: Exception) -> Tuple[str, Optional[str]]:
    """Extracts (message, status code) from a Supabase storage error."""
    detail = exc.args[0] if exc.args else None
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("error") or str(detail)
        status_code = detail.get("statusCode")
        return message, str(status_code) if status_code is not None else None
    return str(exc) or type(exc).__name__, None


def _bucket_name(bucket: Any) -> Optional[str]:
    if isinstance(bucket, dict):
        return bucket.get("name")
    return getattr(bucket, "name", None)


def guess_content_type(filename: str, declared: Optional[str] = None) -> str:
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or DEFAULT_CONTENT_TYPE


class StorageClient:
    """Thin async adapter over one Supabase Storage bucket."""

    def __init__(self, supabase, bucket_name: str = FILES_BUCKET):
        self._supabase = supabase
        self.bucket_name = bucket_name

    def _bucket(self):
        return self._supabase.storage.from_(self.bucket_name)

    async def _call(self, action: str, fn, *args, **kwargs):
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except StorageException as e:
            message, status_code = _describe_error(e)
            logger.error(f"Supabase storage error during {action}: {message} (Code: {status_code})", exc_info=False)
            raise StorageError(message, status_code) from e
        except Exception as e:
            message, _ = _describe_error(e)
            logger.error(f"Unexpected error during {action}: {e}", exc_info=True)
            raise StorageError(message) from e

    async def list_files(self, folder: str, limit: int = settings.FILE_LIST_LIMIT, offset: int = 0,
                         sort_column: Optional[str] = "updated_at", sort_order: str = "desc") -> List[FileRecord]:
        """Lists objects under `folder`, returning records with full storage paths."""
        options: Dict[str, Any] = {"limit": limit, "offset": offset}
        if sort_column:
            options["sortBy"] = {"column": sort_column, "order": sort_order}
        logger.debug(f"[{folder}] Listing up to {limit} objects (offset {offset}).")

        def storage_list():
            return self._bucket().list(folder, options)

        items = await self._call(f"list of '{folder}'", storage_list) or []
        records = []
        for item in items:
            try:
                record = FileRecord.from_storage_item(item, folder)
            except Exception as p_err:
                logger.warning(f"[{folder}] Failed to parse storage item {item.get('name', 'UNKNOWN')}: {p_err}", exc_info=False)
                continue
            if record is not None:
                records.append(record)
        logger.info(f"[{folder}] Listed {len(records)} file(s) from bucket '{self.bucket_name}'.")
        return records

    async def upload(self, path: str, content: bytes, content_type: Optional[str] = None,
                     cache_control: str = settings.UPLOAD_CACHE_CONTROL, upsert: bool = False):
        """Uploads `content` to `path`. Fails if the path already exists unless upsert is set."""
        file_options = {
            "cache-control": cache_control,
            "content-type": content_type or DEFAULT_CONTENT_TYPE,
            "upsert": "true" if upsert else "false",
        }

        def storage_upload():
            return self._bucket().upload(path=path, file=content, file_options=file_options)

        logger.debug(f"Uploading {len(content)} bytes to '{path}'.")
        response = await self._call(f"upload of '{path}'", storage_upload)
        logger.info(f"Uploaded '{path}' to bucket '{self.bucket_name}'.")
        return response

    async def download(self, path: str) -> bytes:
        def storage_download():
            return self._bucket().download(path)

        content = await self._call(f"download of '{path}'", storage_download)
        if not isinstance(content, (bytes, bytearray)):
            logger.error(f"Storage download for '{path}' returned unexpected type {type(content)}.")
            raise StorageError(f"Unexpected download response for '{path}'")
        logger.info(f"Downloaded {len(content)} bytes from '{path}'.")
        return bytes(content)

    async def remove(self, paths: List[str]):
        def storage_remove():
            return self._bucket().remove(paths)

        response = await self._call(f"remove of {paths}", storage_remove)
        logger.info(f"Removed {len(paths)} object(s) from bucket '{self.bucket_name}'.")
        return response

    async def list_buckets(self) -> List[str]:
        def storage_list_buckets():
            return self._supabase.storage.list_buckets()

        buckets = await self._call("bucket listing", storage_list_buckets) or []
        return [name for name in (_bucket_name(b) for b in buckets) if name]

    async def create_bucket(self, name: Optional[str] = None, public: bool = False,
                            file_size_limit: int = settings.MAX_UPLOAD_SIZE_BYTES):
        bucket_id = name or self.bucket_name

        def storage_create_bucket():
            return self._supabase.storage.create_bucket(
                bucket_id,
                options={"public": public, "file_size_limit": file_size_limit},
            )

        response = await self._call(f"creation of bucket '{bucket_id}'", storage_create_bucket)
        logger.info(f"Created bucket '{bucket_id}' (public={public}, file_size_limit={file_size_limit}).")
        return response
