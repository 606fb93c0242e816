# services/dashboard_service/app/catalog.py
"""
File catalog view model.

Holds the locally known snapshot of a user's files, the current search/filter
selection and the bookkeeping for in-flight uploads and deletes. All remote
failures are converted into `core.errors` types here.
"""
import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from core.config import settings, logger as core_logger
from core.errors import (
    NotAuthenticated, LoadFailed, UploadFailed, SomeFilesRejected,
    DeleteFailed, DownloadFailed, StorageError,
)
from core.models import (
    FileRecord, FilterState, TypeFilter, FileBlob, RejectedFile, UploadOutcome,
    UploadResult, DownloadedFile, MutationTicket, TicketKind, User, generate_storage_name,
)
from core.storage import StorageClient, guess_content_type

logger = core_logger.getChild("Dashboard").getChild("Catalog")

ANY_TYPE = "any"

ALLOWED_EXTENSIONS: Dict[str, Tuple[str, ...]] = {
    "image": (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"),
    "document": (".pdf", ".doc", ".docx", ".txt", ".rtf", ".xlsx", ".pptx"),
    "video": (".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv"),
    "audio": (".mp3", ".wav", ".flac", ".aac", ".ogg"),
    "archive": (".zip", ".rar", ".7z", ".tar", ".gz"),
    "code": (".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".c", ".html", ".css", ".json", ".xml"),
}

ProgressCallback = Callable[[float], None]

# --- Pure helpers ---

def filter_records(records: Iterable[FileRecord], state: FilterState) -> List[FileRecord]:
    """
    Records whose name contains the search term and whose category matches the type filter.
    The search runs on the path below the owner folder, so the user id never matches.
    """
    term = state.search_term.lower()
    visible = []
    for record in records:
        if term not in record.relative_name.lower():
            continue
        if state.type_filter is not TypeFilter.ALL and record.category.value.lower() != state.type_filter.value:
            continue
        visible.append(record)
    return visible


def sort_by_updated_desc(records: Iterable[FileRecord]) -> List[FileRecord]:
    """Stable sort, most recently modified first; records without a timestamp go last."""
    records = list(records)
    dated = [r for r in records if r.updated_at is not None]
    undated = [r for r in records if r.updated_at is None]
    return sorted(dated, key=lambda r: r.updated_at, reverse=True) + undated


def is_allowed_type(filename: str, expected_type: str) -> bool:
    if expected_type == ANY_TYPE:
        return True
    extensions = ALLOWED_EXTENSIONS.get(expected_type)
    if extensions is None:
        return False
    return "." + filename.rsplit(".", 1)[-1].lower() in extensions


def select_upload_batch(files: Sequence[FileBlob], expected_type: str = ANY_TYPE,
                        max_size: int = settings.MAX_UPLOAD_SIZE_BYTES) -> Tuple[List[FileBlob], List[RejectedFile]]:
    """Splits candidate files into (accepted, rejected) by size and extension."""
    accepted, rejected = [], []
    for blob in files:
        try:
            size = blob.size
        except OSError as e:
            logger.warning(f"Cannot read upload candidate '{blob.name}': {e}")
            rejected.append(RejectedFile(name=blob.name, reason=f"File {blob.name} could not be read."))
            continue
        if size > max_size:
            rejected.append(RejectedFile(
                name=blob.name,
                reason=f"File {blob.name} is too large. Maximum size is {max_size // (1024 * 1024)}MB.",
            ))
        elif not is_allowed_type(blob.name, expected_type):
            rejected.append(RejectedFile(
                name=blob.name,
                reason=f"File {blob.name} is not an accepted {expected_type} file.",
            ))
        else:
            accepted.append(blob)
    return accepted, rejected


class CatalogViewModel:
    """Client-side source of truth for which files the user has and which are visible."""

    def __init__(self, store: StorageClient, list_limit: int = settings.FILE_LIST_LIMIT):
        self._store = store
        self._list_limit = list_limit
        self._snapshot: List[FileRecord] = []
        self._visible: List[FileRecord] = []
        self._filter = FilterState()
        self._tickets: Dict[str, MutationTicket] = {}
        self._loaded = False

    # --- Read-only state ---

    @property
    def snapshot(self) -> List[FileRecord]:
        return list(self._snapshot)

    @property
    def visible(self) -> List[FileRecord]:
        return list(self._visible)

    @property
    def filter_state(self) -> FilterState:
        return self._filter

    @property
    def has_loaded(self) -> bool:
        return self._loaded

    @property
    def deleting(self) -> Set[str]:
        return {t.target for t in self._tickets.values() if t.kind is TicketKind.DELETE}

    @property
    def uploading(self) -> Set[str]:
        return {t.target for t in self._tickets.values() if t.kind is TicketKind.UPLOAD}

    def is_deleting(self, record_id: str) -> bool:
        return record_id in self.deleting

    def find(self, record_id: str) -> Optional[FileRecord]:
        return next((r for r in self._snapshot if r.id == record_id), None)

    # --- Ticket bookkeeping ---

    def _open_ticket(self, kind: TicketKind, target: str) -> MutationTicket:
        ticket = MutationTicket(kind=kind, target=target)
        self._tickets[ticket.ticket_id] = ticket
        return ticket

    def _close_ticket(self, ticket: MutationTicket):
        self._tickets.pop(ticket.ticket_id, None)

    # --- Operations ---

    def apply_filter(self, state: FilterState) -> List[FileRecord]:
        """Recomputes the visible list for `state`. No network access, snapshot untouched."""
        self._filter = state
        self._visible = filter_records(self._snapshot, state)
        return self.visible

    async def load(self, user: Optional[User]) -> List[FileRecord]:
        """Replaces the snapshot with the store's current listing for `user`."""
        if user is None:
            self._snapshot = []
            self._visible = []
            raise NotAuthenticated()

        job_prefix = f"[{user.id}]"
        try:
            records = await self._store.list_files(user.id, limit=self._list_limit, offset=0,
                                                   sort_column="updated_at", sort_order="desc")
        except StorageError as e:
            if not self._loaded:
                self._visible = []
            logger.error(f"{job_prefix} Loading files failed: {e.message}")
            raise LoadFailed(e.message) from e

        owned = []
        for record in records:
            if record.owner_id != user.id:
                logger.warning(f"{job_prefix} Ignoring record {record.id} outside the user's folder: '{record.name}'")
                continue
            owned.append(record)

        self._snapshot = sort_by_updated_desc(owned)
        self._loaded = True
        self._visible = filter_records(self._snapshot, self._filter)
        logger.info(f"{job_prefix} Loaded {len(self._snapshot)} file(s); {len(self._visible)} visible.")
        return self.visible

    async def upload(self, user: Optional[User], files: Sequence[FileBlob], expected_type: str = ANY_TYPE,
                     progress: Optional[ProgressCallback] = None) -> UploadResult:
        """
        Validates and uploads a batch concurrently, then reloads the snapshot.

        If any upload fails the batch is reported as failed; uploads that
        already succeeded are kept in storage and show up on the next load.
        """
        if user is None:
            raise NotAuthenticated()

        accepted, rejected = select_upload_batch(files, expected_type)
        if rejected:
            logger.warning(f"[{user.id}] {len(rejected)} file(s) rejected before upload: {[r.name for r in rejected]}")
        if not accepted:
            raise SomeFilesRejected(rejected[0].reason if len(rejected) == 1 else None, rejected=rejected)

        total = len(accepted)
        completed = 0

        async def upload_one(blob: FileBlob) -> UploadOutcome:
            nonlocal completed
            storage_name = generate_storage_name(user.id, blob.name)
            ticket = self._open_ticket(TicketKind.UPLOAD, storage_name)
            try:
                content = await asyncio.to_thread(blob.read)
                await self._store.upload(
                    storage_name, content,
                    content_type=guess_content_type(blob.name, blob.content_type),
                    cache_control=settings.UPLOAD_CACHE_CONTROL,
                    upsert=False,
                )
            except StorageError as e:
                ticket.fail(e.message)
                return UploadOutcome(filename=blob.name, storage_name=storage_name, succeeded=False, error=e.message)
            except Exception as e:
                logger.error(f"[{user.id}] Unexpected error uploading '{blob.name}': {e}", exc_info=True)
                ticket.fail(str(e))
                return UploadOutcome(filename=blob.name, storage_name=storage_name, succeeded=False, error=str(e))
            else:
                ticket.resolve()
            finally:
                self._close_ticket(ticket)
            completed += 1
            if progress is not None:
                progress(completed / total * 100)
            return UploadOutcome(filename=blob.name, storage_name=storage_name, succeeded=True)

        logger.info(f"[{user.id}] Uploading {total} file(s).")
        outcomes: List[UploadOutcome] = await asyncio.gather(*(upload_one(blob) for blob in accepted))

        failures = [o for o in outcomes if not o.succeeded]
        if failures:
            logger.error(f"[{user.id}] Upload batch failed: {len(failures)} of {total} file(s) failed "
                         f"({total - len(failures)} stored remotely).")
            raise UploadFailed(failures[0].error, outcomes=outcomes)

        logger.info(f"[{user.id}] Uploaded {total} file(s); refreshing catalog.")
        reload_error = None
        try:
            await self.load(user)
        except LoadFailed as e:
            logger.warning(f"[{user.id}] Upload succeeded but refreshing the catalog failed: {e.message}")
            reload_error = e.message
        return UploadResult(uploaded_count=total, rejected=rejected, outcomes=outcomes, reload_error=reload_error)

    async def remove(self, user: Optional[User], record: FileRecord):
        """Deletes one record. The caller must already have the user's confirmation."""
        if user is None:
            raise NotAuthenticated()
        if record.owner_id != user.id:
            logger.warning(f"[{user.id}] Refusing to delete '{record.name}' outside the user's folder.")
            raise DeleteFailed("File does not belong to the current user")

        ticket = self._open_ticket(TicketKind.DELETE, record.id)
        try:
            await self._store.remove([record.name])
        except StorageError as e:
            ticket.fail(e.message)
            raise DeleteFailed(e.message) from e
        else:
            ticket.resolve()
        finally:
            self._close_ticket(ticket)

        self._snapshot = [r for r in self._snapshot if r.id != record.id]
        self._visible = [r for r in self._visible if r.id != record.id]
        logger.info(f"[{user.id}] Deleted '{record.name}'.")

    async def download(self, user: Optional[User], record: FileRecord) -> DownloadedFile:
        if user is None:
            raise NotAuthenticated()
        if record.owner_id != user.id:
            raise DownloadFailed("File does not belong to the current user")
        try:
            content = await self._store.download(record.name)
        except StorageError as e:
            raise DownloadFailed(e.message) from e
        return DownloadedFile(filename=record.display_name, content=content, content_type=record.mime_type or None)
