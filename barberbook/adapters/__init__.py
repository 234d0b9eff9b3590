"""
Adapters layer - External integrations (hosted store and auth service).
"""

from .auth_client import SessionStorage, SupabaseAuthClient
from .mock_store import InMemoryStore, MockAuthClient, load_fixture
from .rest_client import RestClient
from .supabase_store import SupabaseStore

__all__ = [
    "InMemoryStore",
    "MockAuthClient",
    "RestClient",
    "SessionStorage",
    "SupabaseAuthClient",
    "SupabaseStore",
    "load_fixture",
]
