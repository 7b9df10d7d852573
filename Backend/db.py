import logging
from supabase import create_client, Client
from config import settings

logger = logging.getLogger(__name__)

# Single shared client for the documents, categories and users tables
try:
    supabase: Client = create_client(settings.supabase_url, settings.supabase_key)
except Exception as e:
    logger.critical(f"Failed to initialize Supabase client: {e}")
    raise


def check_connection(client: Client, table: str) -> None:
    """Lightweight query that fails fast when the store or the table is unreachable."""
    logger.info(f"Verifying Supabase connection via '{table}'...")
    client.table(table).select("id").limit(1).execute()
    logger.info("Supabase connection verified.")
