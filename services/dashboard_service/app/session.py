# services/dashboard_service/app/session.py
import os
import shutil
import tempfile
from typing import Optional

from core.auth import IdentityProvider
from core.config import logger as core_logger
from core.models import User
from core.storage import StorageClient
from core.supabase_client import create_supabase_client, FILES_BUCKET
from .catalog import CatalogViewModel

logger = core_logger.getChild("Dashboard").getChild("Session")


class DashboardSession:
    """
    Everything one browser session needs: its own Supabase client (which holds
    the auth session), the identity and storage adapters built on it, the file
    catalog and the signed-in user. Created once per session and passed to
    every UI handler.
    """

    def __init__(self, supabase, bucket_name: str = FILES_BUCKET):
        self.client = supabase
        self.identity = IdentityProvider(supabase)
        self.store = StorageClient(supabase, bucket_name)
        self.catalog = CatalogViewModel(self.store)
        self.user: Optional[User] = None
        self._download_dir: Optional[str] = None

    @classmethod
    async def open(cls) -> "DashboardSession":
        supabase = await create_supabase_client(use_service_key=False)
        logger.info("Opened new dashboard session.")
        return cls(supabase)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def sign_in(self, email: str, password: str) -> User:
        self.user = await self.identity.sign_in(email, password)
        return self.user

    async def sign_up(self, email: str, password: str, confirm_password: str) -> str:
        return await self.identity.sign_up(email, password, confirm_password)

    async def refresh_user(self) -> Optional[User]:
        """Re-resolves the user from the auth session (e.g. after token expiry)."""
        self.user = await self.identity.get_current_user()
        return self.user

    async def sign_out(self):
        await self.identity.sign_out()
        self.user = None
        # Drop everything cached for the previous user
        self.catalog = CatalogViewModel(self.store)
        self.clear_downloads()

    def download_path(self, filename: str) -> str:
        """Local path for a downloaded copy. Earlier copies of this session are removed first."""
        if self._download_dir is None:
            self._download_dir = tempfile.mkdtemp(prefix="cloudstore-")
        for entry in os.listdir(self._download_dir):
            os.remove(os.path.join(self._download_dir, entry))
        return os.path.join(self._download_dir, filename)

    def clear_downloads(self):
        if self._download_dir is not None:
            shutil.rmtree(self._download_dir, ignore_errors=True)
            self._download_dir = None
