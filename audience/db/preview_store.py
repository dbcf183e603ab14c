#!/usr/bin/env python3
"""
Preview store for compiled audience queries.
Runs relational WHERE clauses against a local SQLite contacts table to
preview matching rows and count the audience.
"""

import math
import os
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiosqlite

from .db_helpers import aconnect, with_connection
from .filters.registry import FIELD_REGISTRY, FieldRegistry, ValueType
from ..exceptions import QueryError, StorageError
from ..log_manager import get_logger


EARTH_RADIUS_M = 6371008.8

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

_NUMERIC_TYPES = {ValueType.NUMBER, ValueType.NUMBER_RANGE, ValueType.NUMBER_LIST}


def quote_identifier(name: str) -> str:
    """Double-quote an SQL identifier."""
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def ll_to_earth(lat: Optional[float], lng: Optional[float]) -> Optional[str]:
    """Encode a coordinate pair the way geo columns store it: "lat,lng"."""
    if lat is None or lng is None:
        return None
    return f"{float(lat)},{float(lng)}"


def _parse_point(value: Any):
    if not isinstance(value, str):
        return None
    try:
        lat, lng = (float(part) for part in value.split(","))
    except ValueError:
        return None
    return lat, lng


def earth_distance(a: Optional[str], b: Optional[str]) -> Optional[float]:
    """Great-circle (haversine) distance in meters between two encoded points."""
    first, second = _parse_point(a), _parse_point(b)
    if first is None or second is None:
        return None
    lat1, lng1 = map(math.radians, first)
    lat2, lng2 = map(math.radians, second)
    h = (math.sin((lat2 - lat1) / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2)
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


class PreviewStore:
    """
    Executes compiled WHERE clauses against a SQLite contacts table.

    The table has one column per registry field, named after the field's
    relational mapper. Geo columns hold "lat,lng" strings so the
    earth_distance/ll_to_earth predicate emitted by the relational compiler
    runs unchanged.
    """

    def __init__(self, db_path: str,
                 registry: Optional[FieldRegistry] = None,
                 table: str = "audience_contacts",
                 max_limit: int = MAX_LIMIT):
        """
        Initialize preview store

        Args:
            db_path: Path to SQLite database file
            registry: Field registry defining the columns
            table: Contacts table name
            max_limit: Upper bound applied to preview page sizes
        """
        self.db_path = db_path
        self.registry = registry if registry is not None else FIELD_REGISTRY
        self.table = table
        self.max_limit = max_limit
        self.sql_functions = {
            'll_to_earth': (2, ll_to_earth),
            'earth_distance': (2, earth_distance),
        }
        self.logger = get_logger('PreviewStore', component='stores')

    def _column_types(self) -> Dict[str, str]:
        columns: Dict[str, str] = {}
        for definition in self.registry:
            if definition.value_type in _NUMERIC_TYPES:
                sql_type = "NUMERIC"
            elif definition.value_type == ValueType.BOOLEAN:
                sql_type = "INTEGER"
            else:
                sql_type = "TEXT"
            columns.setdefault(definition.relational_mapper, sql_type)
        return columns

    async def initialize(self):
        """Create the contacts table if it does not exist"""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        columns = ",\n".join(
            f"    {quote_identifier(name)} {sql_type}"
            for name, sql_type in self._column_types().items()
        )
        async with aconnect(self.db_path, writer=True) as conn:
            await conn.execute(
                f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.table)} (\n"
                f"    id INTEGER PRIMARY KEY AUTOINCREMENT,\n{columns}\n)"
            )
        self.logger.info(f"Preview store ready at {self.db_path} (table {self.table})")

    @with_connection(writer=True)
    async def add_contacts(self, conn, contacts: Iterable[Dict[str, Any]]) -> int:
        """
        Insert contact rows.

        Args:
            contacts: Dicts keyed by relational mapper; geo values may be
                {lat, lng} mappings

        Returns:
            Number of rows inserted

        Raises:
            StorageError: If a row names an unknown column
        """
        known = self._column_types()
        count = 0
        for contact in contacts:
            unknown = [key for key in contact if key not in known]
            if unknown:
                raise StorageError(f"Unknown contact columns: {unknown}")

            names = list(contact)
            values = [self._encode(contact[name]) for name in names]
            column_sql = ", ".join(quote_identifier(n) for n in names)
            placeholders = ", ".join("?" for _ in names)
            await conn.execute(
                f"INSERT INTO {quote_identifier(self.table)} ({column_sql}) VALUES ({placeholders})",
                values
            )
            count += 1
        return count

    @staticmethod
    def _encode(value: Any) -> Any:
        if isinstance(value, Mapping) and "lat" in value and "lng" in value:
            return ll_to_earth(value["lat"], value["lng"])
        return value

    def _clamp(self, limit: Any, offset: Any):
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            limit = DEFAULT_LIMIT
        try:
            offset = int(offset)
        except (TypeError, ValueError):
            offset = 0
        return max(0, min(limit, self.max_limit)), max(0, offset)

    @with_connection(writer=False)
    async def run_preview(self, conn, where_clause: str, params: Sequence[Any],
                          limit: int = DEFAULT_LIMIT, offset: int = 0,
                          select: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Fetch one page of matching contacts.

        Args:
            where_clause: Compiled clause with ? placeholders
            params: Parameters for the clause
            limit: Page size, clamped to [0, max_limit]
            offset: Rows to skip, clamped to >= 0
            select: Columns to return (default: all)

        Returns:
            Dict with rows (list of dicts), limit and offset
        """
        limit, offset = self._clamp(limit, offset)
        columns = ", ".join(quote_identifier(c) for c in select) if select else "*"
        sql = (f"SELECT {columns} FROM {quote_identifier(self.table)} "
               f"WHERE {where_clause} ORDER BY id LIMIT ? OFFSET ?")

        try:
            cursor = await conn.execute(sql, [*params, limit, offset])
            names = [d[0] for d in cursor.description]
            rows = [dict(zip(names, row)) for row in await cursor.fetchall()]
        except aiosqlite.Error as e:
            self.logger.error(f"Preview query failed: {e} (where: {where_clause})")
            raise QueryError(f"Preview query failed: {e}") from e

        self.logger.debug(f"Preview returned {len(rows)} rows (limit={limit}, offset={offset})")
        return {"rows": rows, "limit": limit, "offset": offset}

    @with_connection(writer=False)
    async def get_total_count(self, conn, where_clause: str, params: Sequence[Any]) -> int:
        """Count contacts matching a compiled clause."""
        sql = f"SELECT COUNT(*) FROM {quote_identifier(self.table)} WHERE {where_clause}"
        try:
            cursor = await conn.execute(sql, list(params))
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            self.logger.error(f"Count query failed: {e} (where: {where_clause})")
            raise QueryError(f"Count query failed: {e}") from e
        return row[0] if row else 0
