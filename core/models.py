# core/models.py
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Dict, Any
from enum import Enum
import datetime
import os
import secrets
import time
import uuid

# --- Utility Functions ---

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

def generate_random_token(length: int = 11) -> str:
    """Random lowercase base-36 token used to make storage names unique."""
    return ''.join(secrets.choice(_BASE36) for _ in range(length))

def file_extension(filename: str) -> str:
    """Text after the last '.', or the whole name when there is no dot."""
    return filename.rsplit(".", 1)[-1]

def generate_storage_name(user_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    """Builds a collision-resistant object path: <userId>/<millis>-<token>.<ext>"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{user_id}/{now_ms}-{generate_random_token()}.{file_extension(filename)}"

# --- Classification ---

class FileCategory(str, Enum):
    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"
    DOCUMENT = "Document"
    ARCHIVE = "Archive"
    CODE = "Code"
    OTHER = "Other"

    @property
    def plural(self) -> str:
        return "Audio" if self is FileCategory.AUDIO else f"{self.value}s"


class TypeFilter(str, Enum):
    ALL = "all"
    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    CODE = "code"


def categorize(mime_type: Optional[str]) -> FileCategory:
    """Derives a category from a content-type string. Order of the checks matters."""
    mime = mime_type or ""
    if mime.startswith("image/"): return FileCategory.IMAGE
    if mime.startswith("video/"): return FileCategory.VIDEO
    if mime.startswith("audio/"): return FileCategory.AUDIO
    if "pdf" in mime or "document" in mime: return FileCategory.DOCUMENT
    if "zip" in mime or "archive" in mime: return FileCategory.ARCHIVE
    if "javascript" in mime or "json" in mime or "html" in mime: return FileCategory.CODE
    return FileCategory.OTHER

# --- Core Data Models ---

class User(BaseModel):
    """The signed-in user as reported by Supabase Auth."""
    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime.datetime] = None

    class Config:
        from_attributes = True


class FileRecord(BaseModel):
    """One stored object as known to the catalog."""
    id: str = Field(..., description="Opaque identifier assigned by the store")
    name: str = Field(..., description="Full storage path: <userId>/<filename>")
    updated_at: Optional[datetime.datetime] = None
    size_bytes: int = Field(default=0, ge=0)
    mime_type: str = ""

    @property
    def display_name(self) -> str:
        return self.name.split("/")[-1]

    @property
    def relative_name(self) -> str:
        """Path inside the owner's folder."""
        return self.name.split("/", 1)[-1]

    @property
    def owner_id(self) -> str:
        return self.name.split("/", 1)[0]

    @property
    def category(self) -> FileCategory:
        return categorize(self.mime_type)

    @property
    def type_label(self) -> str:
        """Badge text shown next to a file. PDFs get their own label."""
        category = self.category
        if category is FileCategory.DOCUMENT and "pdf" in self.mime_type:
            return "PDF"
        if category is FileCategory.OTHER:
            return "File"
        return category.value

    @classmethod
    def from_storage_item(cls, item: Dict[str, Any], folder: str) -> Optional["FileRecord"]:
        """
        Parses one entry of a Supabase Storage `list()` response.
        Returns None for folder entries (no id) and placeholder objects.
        """
        item_id = item.get("id")
        name = item.get("name") or ""
        if not item_id or not name or name == ".emptyFolderPlaceholder":
            return None
        # The store lists names relative to the folder that was listed
        full_name = name if not folder or name.startswith(f"{folder}/") else f"{folder}/{name}"
        metadata = item.get("metadata") or {}
        return cls(
            id=str(item_id),
            name=full_name,
            updated_at=item.get("updated_at") or item.get("created_at"),
            size_bytes=metadata.get("size") or 0,
            mime_type=metadata.get("mimetype") or "",
        )


class FilterState(BaseModel):
    """Local search/filter selection; never sent to the store."""
    search_term: str = ""
    type_filter: TypeFilter = TypeFilter.ALL


class TicketKind(str, Enum):
    UPLOAD = "upload"
    DELETE = "delete"


class TicketStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class MutationTicket(BaseModel):
    """Bookkeeping for one in-flight upload or delete."""
    ticket_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    kind: TicketKind
    target: str = Field(..., description="Record id for deletes, pending storage name for uploads")
    status: TicketStatus = TicketStatus.PENDING
    error: Optional[str] = None

    def resolve(self):
        if self.status is not TicketStatus.PENDING:
            raise ValueError(f"Ticket {self.ticket_id} already {self.status.value}")
        self.status = TicketStatus.SUCCEEDED

    def fail(self, message: str):
        if self.status is not TicketStatus.PENDING:
            raise ValueError(f"Ticket {self.ticket_id} already {self.status.value}")
        self.status = TicketStatus.FAILED
        self.error = message

# --- Upload Models ---

class FileBlob(BaseModel):
    """A file selected for upload, either in memory or on local disk."""
    name: str
    data: Optional[bytes] = None
    path: Optional[str] = None
    content_type: Optional[str] = None

    @model_validator(mode='after')
    def check_source_provided(self):
        if self.data is None and not self.path:
            raise ValueError("Either 'data' or 'path' must be provided for a file blob.")
        return self

    @property
    def size(self) -> int:
        if self.data is not None:
            return len(self.data)
        return os.path.getsize(self.path)

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        with open(self.path, 'rb') as f:
            return f.read()


class RejectedFile(BaseModel):
    name: str
    reason: str


class UploadOutcome(BaseModel):
    """Result of uploading one file of a batch."""
    filename: str
    storage_name: str
    succeeded: bool
    error: Optional[str] = None


class UploadResult(BaseModel):
    """Result of a fully successful upload batch."""
    uploaded_count: int
    rejected: List[RejectedFile] = Field(default_factory=list)
    outcomes: List[UploadOutcome] = Field(default_factory=list)
    reload_error: Optional[str] = Field(None, description="Set when the files were stored but the refresh afterwards failed")

    @property
    def message(self) -> str:
        text = f"Successfully uploaded {self.uploaded_count} file(s) to the cloud!"
        if self.rejected:
            text += f" {len(self.rejected)} file(s) were filtered out due to file type or size restrictions."
        if self.reload_error:
            text += f" The file list could not be refreshed: {self.reload_error}"
        return text


class DownloadedFile(BaseModel):
    filename: str
    content: bytes
    content_type: Optional[str] = None

# --- Usage Statistics ---

class CategoryUsage(BaseModel):
    count: int = 0
    total_size: int = 0


class StorageUsage(BaseModel):
    total_files: int = 0
    total_size: int = 0
    by_category: Dict[FileCategory, CategoryUsage] = Field(default_factory=dict)
    recent_uploads: int = 0
    quota_bytes: int = 0

    @property
    def usage_percentage(self) -> float:
        if self.quota_bytes <= 0:
            return 0.0
        return self.total_size / self.quota_bytes * 100

    def categories_by_size(self) -> List[tuple]:
        return sorted(self.by_category.items(), key=lambda kv: kv[1].total_size, reverse=True)


class StorageStatus(BaseModel):
    """Result of probing the storage backend's capabilities for the current user."""
    bucket_exists: bool = False
    can_list: bool = False
    can_upload: bool = False
    can_delete: bool = False
    error: Optional[str] = None

    @property
    def fully_working(self) -> bool:
        return self.bucket_exists and self.can_list and self.can_upload and self.can_delete

# --- API Response Models ---

class ServiceResponse(BaseModel):
    """Standard response wrapper for the dashboard's HTTP endpoints."""
    status: str = Field(description="'success' or 'error'")
    data: Any | None = Field(default=None, description="The primary data payload (depends on the endpoint)")
    message: Optional[str] = Field(default=None, description="Optional informational message")
