# core/errors.py
"""
Error taxonomy shared by the dashboard.

Every remote failure is converted into one of these at the catalog / session
boundary, so the UI only ever deals with a short human-readable `message`.
"""
from typing import List, Optional


class CloudStoreError(Exception):
    """Base class for all errors surfaced to the dashboard UI."""
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAuthenticated(CloudStoreError):
    default_message = "User not authenticated"


class LoadFailed(CloudStoreError):
    default_message = "Failed to load files from cloud storage"


class UploadFailed(CloudStoreError):
    """Raised when any member of an upload batch fails.

    `outcomes` holds the per-file results of the batch; files that were
    uploaded before the failure stay in storage.
    """
    default_message = "Failed to upload files to cloud storage"

    def __init__(self, message: Optional[str] = None, outcomes: Optional[list] = None):
        super().__init__(message)
        self.outcomes = outcomes or []

    @property
    def uploaded_count(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)


class SomeFilesRejected(CloudStoreError):
    """Raised when files fail local size/type checks and nothing is left to upload."""
    default_message = "Some files were filtered out due to file type or size restrictions"

    def __init__(self, message: Optional[str] = None, rejected: Optional[List] = None):
        super().__init__(message)
        self.rejected = rejected or []


class DeleteFailed(CloudStoreError):
    default_message = "Failed to delete file from cloud storage"


class DownloadFailed(CloudStoreError):
    default_message = "Failed to download file from cloud"


class BucketMissing(CloudStoreError):
    default_message = "Files bucket not found"


class BucketCheckFailed(CloudStoreError):
    default_message = "Bucket check failed"


class SignInFailed(CloudStoreError):
    default_message = "Invalid email or password"


class SignUpFailed(CloudStoreError):
    default_message = "An unexpected error occurred. Please try again."


class StorageError(Exception):
    """Internal: raised by core.storage for any failed Supabase Storage call."""

    def __init__(self, message: str, status_code: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
