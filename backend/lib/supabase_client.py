"""
Supabase client for backend operations
"""
import os
from functools import lru_cache

from supabase import create_client, Client
from dotenv import load_dotenv

load_dotenv()
load_dotenv('../.env')  # Also try parent directory


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Supabase client built from SUPABASE_URL / SUPABASE_SERVICE_KEY.

    The service role key bypasses row-level security, so every query made
    with this client must filter by the authenticated user's id.

    Raises:
        ValueError: if either variable is missing
    """
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment")
    return create_client(url, key)
