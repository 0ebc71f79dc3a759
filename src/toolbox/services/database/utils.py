"""Generic database utility functions for Supabase interactions."""

import logging
from typing import Any

from supabase import Client

from src.toolbox.services.database.connection import get_supabase_admin_client, get_supabase_client

logger = logging.getLogger(__name__)


class SupabaseQueryBuilder:
    """Helper class for building and executing Supabase queries."""

    def __init__(self, client: Client | None = None) -> None:
        """
        Initialize query builder.

        Args:
            client: Supabase client instance (uses default if None)
        """
        self.client = client or get_supabase_client()

    def get_by_id(self, table: str, record_id: int | str, columns: str = "*") -> dict[str, Any] | None:
        """
        Fetch a single record by ID.

        Args:
            table: Table name
            record_id: Record ID
            columns: Columns to select (default: "*")

        Returns:
            Record dictionary or None if not found

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> user = builder.get_by_id("users", 42)
        """
        response = self.client.table(table).select(columns).eq("id", record_id).execute()
        return response.data[0] if response.data else None

    def find_one(
        self, table: str, filters: dict[str, Any], columns: str = "*"
    ) -> dict[str, Any] | None:
        """
        Fetch the first record matching every filter.

        Args:
            table: Table name
            filters: Dictionary of field:value pairs (all must match)
            columns: Columns to select (default: "*")

        Returns:
            First matching record or None

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> user = builder.find_one("users", {"provider": "zalo", "federated_id": "123"})
        """
        query = self.client.table(table).select(columns)
        for field, value in filters.items():
            query = query.eq(field, value)

        response = query.limit(1).execute()
        return response.data[0] if response.data else None

    def list_records(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        List records with optional filtering.

        Args:
            table: Table name
            columns: Columns to select (default: "*")
            filters: Dictionary of field:value pairs for filtering
            limit: Maximum records to return

        Returns:
            List of record dictionaries

        Example:
            >>> builder = SupabaseQueryBuilder()
            >>> rows = builder.list_records("system_settings", filters={"category": "zalo_oauth"})
        """
        query = self.client.table(table).select(columns)

        if filters:
            for field, value in filters.items():
                query = query.eq(field, value)

        if limit is not None:
            query = query.limit(limit)

        response = query.execute()
        return response.data

    def insert_record(self, table: str, data: dict[str, Any]) -> dict[str, Any] | None:
        """
        Insert a single record.

        Args:
            table: Table name
            data: Record data dictionary

        Returns:
            Inserted record dictionary or None if nothing was returned

        Raises:
            postgrest.exceptions.APIError: If the insert is rejected (e.g. unique violation)
        """
        response = self.client.table(table).insert(data).execute()
        return response.data[0] if response.data else None

    def update_record(
        self, table: str, record_id: int | str, data: dict[str, Any]
    ) -> dict[str, Any] | None:
        """
        Update a record by ID.

        Args:
            table: Table name
            record_id: Record ID
            data: Fields to update

        Returns:
            Updated record dictionary or None if not found
        """
        response = self.client.table(table).update(data).eq("id", record_id).execute()
        return response.data[0] if response.data else None

    def delete_record(self, table: str, record_id: int | str) -> bool:
        """
        Delete a record by ID.

        Args:
            table: Table name
            record_id: Record ID

        Returns:
            True if deleted, False if not found
        """
        response = self.client.table(table).delete().eq("id", record_id).execute()
        return len(response.data) > 0


def get_query_builder(client: Client | None = None, use_admin: bool = True) -> SupabaseQueryBuilder:
    """
    Get instance of SupabaseQueryBuilder.

    Args:
        client: Optional Supabase client (uses default if None)
        use_admin: If True (default), uses admin client that bypasses RLS.

    Returns:
        SupabaseQueryBuilder instance

    Example:
        >>> db = get_query_builder()
        >>> account = db.get_by_id("users", 42)
    """
    if client is None:
        client = get_supabase_admin_client() if use_admin else get_supabase_client()
    return SupabaseQueryBuilder(client)
