from supabase import create_client, Client
from core.config import settings, logger
import asyncio
from functools import partial

# Bucket name used for all user files
FILES_BUCKET = settings.STORAGE_BUCKET

async def create_supabase_client(use_service_key=False) -> Client:
    """
    Builds a new Supabase client. The caller owns the instance and keeps it for
    the lifetime of one user session (or of the process, for the service client).
    Args:
        use_service_key: If True, builds a client using the service role key to bypass RLS
    """
    url = settings.SUPABASE_URL
    # Choose the appropriate key based on client type
    key = settings.SUPABASE_SERVICE_KEY if use_service_key else settings.SUPABASE_KEY
    key_type_str = 'service role' if use_service_key else 'anon'

    if not url or not key:
        missing_key = "Service Role Key" if use_service_key else "Anon Key"
        logger.error(f"Supabase URL or {missing_key} not configured. Cannot create client.")
        raise ValueError(f"Supabase URL or {missing_key} not configured")

    logger.info(f"Initializing Supabase client with {key_type_str} key...")
    try:
        # Run create_client in a thread pool since it's synchronous
        loop = asyncio.get_running_loop()
        client_instance = await loop.run_in_executor(
            None,
            partial(create_client, url, key)
        )
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client with {key_type_str} key: {e}", exc_info=True)
        raise RuntimeError(f"Failed to initialize Supabase client: {e}")

    logger.info(f"Supabase client with {key_type_str} key initialized successfully.")
    return client_instance
