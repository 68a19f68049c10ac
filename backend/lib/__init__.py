"""Backend utilities"""
from .supabase_client import get_supabase_client
from .auth import UserContext, get_current_user
from .sessions import SessionRegistry

__all__ = ["get_supabase_client", "get_current_user", "UserContext", "SessionRegistry"]
