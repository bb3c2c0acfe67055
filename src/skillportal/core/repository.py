"""
Skill Portal Core - Base Repository.

Abstract base class for all repositories following the repository pattern.
Every PostgREST call goes through `_execute` so that client and network
failures surface as PersistenceException.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from skillportal.core.supabase_client import get_supabase_client
from skillportal.exceptions import NotFoundException, PersistenceException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository for database operations.

    All module repositories should inherit from this class.
    """

    def __init__(self, client: Client | None = None):
        """Initialize repository with optional Supabase client."""
        self._client = client or get_supabase_client()

    @property
    @abstractmethod
    def table_name(self) -> str:
        """Return the table name for this repository."""
        ...

    @property
    def table(self):
        """Get the Supabase table reference."""
        return self._client.table(self.table_name)

    def _execute(self, query, operation: str):
        """Run a built query, translating client failures."""
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Supabase {operation} on '{self.table_name}' failed: {e}")
            raise PersistenceException(self.table_name, operation, str(e)) from e

    async def get_by_id(self, id: UUID | str) -> T | None:
        """
        Get a single record by ID.

        Args:
            id: The record UUID

        Returns:
            The record if found, None otherwise
        """
        response = self._execute(
            self.table.select("*").eq("id", str(id)).limit(1),
            "select",
        )
        rows = response.data or []
        return rows[0] if rows else None

    async def get_by_id_or_raise(self, id: UUID | str) -> T:
        """
        Get a single record by ID, raise if not found.

        Raises:
            NotFoundException: If record not found
        """
        result = await self.get_by_id(id)
        if not result:
            raise NotFoundException(self.table_name, id)
        return result

    async def create(self, data: dict[str, Any]) -> T:
        """
        Create a new record.

        Args:
            data: The record data

        Returns:
            The created record
        """
        response = self._execute(self.table.insert(data), "insert")
        if not response.data:
            raise PersistenceException(self.table_name, "insert", "insert returned no row")
        return response.data[0]

    async def append_with_retry(self, data: dict[str, Any], attempts: int) -> T:
        """
        Insert into an append-only table, retrying on failure.

        Raises the last PersistenceException once all attempts are used.
        """
        last_error: PersistenceException | None = None
        for attempt in range(1, max(attempts, 1) + 1):
            try:
                return await self.create(data)
            except PersistenceException as e:
                last_error = e
                logger.warning(
                    f"Append to '{self.table_name}' failed (attempt {attempt}/{attempts})"
                )
        assert last_error is not None
        raise last_error

    async def update_where(self, data: dict[str, Any], match: dict[str, Any]) -> list[T]:
        """
        Conditionally update rows matching every `match` column.

        Returns the updated rows; an empty list means the condition no
        longer held (someone else changed the row first).
        """
        query = self.table.update(data)
        for column, value in match.items():
            query = query.eq(column, value)
        response = self._execute(query, "update")
        return response.data or []
