# core/auth.py
import asyncio
from typing import Optional

from core.config import settings, logger as core_logger
from core.errors import SignInFailed, SignUpFailed
from core.models import User

logger = core_logger.getChild("Auth")


def _to_user(raw) -> Optional[User]:
    if raw is None:
        return None
    try:
        return User.model_validate(raw)
    except Exception as p_err:
        logger.error(f"Failed to parse Supabase user into model: {p_err}", exc_info=False)
        return None


def validate_new_password(password: str, confirm_password: str):
    """Local checks run before any sign-up request is sent."""
    if password != confirm_password:
        raise SignUpFailed("Passwords do not match")
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise SignUpFailed(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")


class IdentityProvider:
    """Wraps the Supabase Auth API of one client instance (one user session)."""

    def __init__(self, supabase):
        self._supabase = supabase

    async def get_current_user(self) -> Optional[User]:
        """Returns the signed-in user, or None. Never raises for 'not logged in'."""
        try:
            response = await asyncio.to_thread(self._supabase.auth.get_user)
        except Exception as e:
            logger.warning(f"Could not resolve current user, treating as signed out: {e}", exc_info=False)
            return None
        if not response or not getattr(response, "user", None):
            return None
        return _to_user(response.user)

    async def sign_in(self, email: str, password: str) -> User:
        logger.info(f"Sign-in attempt for '{email}'.")
        try:
            response = await asyncio.to_thread(
                self._supabase.auth.sign_in_with_password,
                {"email": email, "password": password},
            )
        except Exception as e:
            logger.warning(f"Sign-in failed for '{email}': {e}", exc_info=False)
            raise SignInFailed(str(e) or None) from e
        user = _to_user(getattr(response, "user", None))
        if user is None:
            raise SignInFailed()
        logger.info(f"User {user.id} signed in.")
        return user

    async def sign_up(self, email: str, password: str, confirm_password: str) -> str:
        """Registers a new account and returns the message to show the user."""
        validate_new_password(password, confirm_password)
        logger.info(f"Sign-up attempt for '{email}'.")
        try:
            response = await asyncio.to_thread(
                self._supabase.auth.sign_up,
                {"email": email, "password": password},
            )
        except Exception as e:
            logger.warning(f"Sign-up failed for '{email}': {e}", exc_info=False)
            raise SignUpFailed(str(e) or None) from e
        user = _to_user(getattr(response, "user", None))
        if user is None:
            raise SignUpFailed()
        if user.email_confirmed_at:
            return "Account created successfully! You can now sign in."
        return "Success! Check your email for the confirmation link."

    async def sign_out(self):
        try:
            await asyncio.to_thread(self._supabase.auth.sign_out)
            logger.info("User signed out.")
        except Exception as e:
            # The local session is discarded by the caller either way
            logger.warning(f"Sign-out request failed: {e}", exc_info=False)
