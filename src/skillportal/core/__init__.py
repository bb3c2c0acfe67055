"""
Skill Portal Core - persistence plumbing shared by every module.

- supabase_client: cached service-role client and fresh auth clients
- repository: BaseRepository with error translation and append retries
"""

from skillportal.core.repository import BaseRepository
from skillportal.core.supabase_client import create_auth_client, get_supabase_client

__all__ = ["BaseRepository", "create_auth_client", "get_supabase_client"]
