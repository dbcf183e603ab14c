"""
Audience filter API.
This is the main entry point for validating, compiling and previewing
audience filters.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from .config import Config, PARAMSTYLES
from .db.filters import (
    FieldRegistry, FIELD_REGISTRY, FilterValidator, Group, Violation,
    RelationalFilterBackend, SearchFilterBackend, simple_to_boolean
)
from .db.filters.editing import describe
from .db.preview_store import PreviewStore
from .exceptions import ConfigError, StorageError, ValidationError
from .log_manager import get_logger, get_logging_manager
from .models import AudienceFilters, CompiledQueries, FilterMode


FiltersInput = Union[AudienceFilters, Dict[str, Any], None]

_ENVELOPE_KEYS = {"mode", "simple", "boolean"}


class AudienceFilterAPI:
    """
    Facade over the filter pipeline.

    This class provides a single interface for:
    - Resolving stored filters (simple or boolean mode) to one expression
    - Validating expressions against the field registry
    - Compiling to a relational WHERE clause and a search filter
    - Previewing and counting audiences against a local SQLite store
    """

    def __init__(self,
                 registry: Optional[FieldRegistry] = None,
                 strict_validation: bool = True,
                 paramstyle: str = "qmark",
                 max_depth: int = 10,
                 db_path: Optional[str] = None,
                 contacts_table: str = "audience_contacts"):
        """
        Initialize the API.

        Args:
            registry: Field registry (default: the process-wide registry)
            strict_validation: Refuse to compile expressions with violations
            paramstyle: Placeholder style of the relational output
                ('qmark' or 'numeric')
            max_depth: Maximum group nesting accepted from stored JSON
            db_path: SQLite database for previews (None disables previews)
            contacts_table: Table holding preview contacts
        """
        if paramstyle not in PARAMSTYLES:
            raise ConfigError(f"paramstyle must be one of {PARAMSTYLES}, got {paramstyle!r}")

        self.registry = registry if registry is not None else FIELD_REGISTRY
        self.strict_validation = strict_validation
        self.max_depth = max_depth
        self.db_path = db_path

        self.validator = FilterValidator(self.registry)
        self.relational = RelationalFilterBackend(self.registry, paramstyle=paramstyle)
        self.search = SearchFilterBackend(self.registry)

        # Previews run on SQLite: LIKE instead of ILIKE, quoted dotted columns
        self.preview_backend = RelationalFilterBackend(
            self.registry, paramstyle="qmark", like_operator="LIKE", quote_identifiers=True
        )
        self.store = None
        if db_path:
            self.store = PreviewStore(db_path, registry=self.registry, table=contacts_table)

        self.logger = get_logger('AudienceFilterAPI', component='api')

    @classmethod
    def from_env(cls, registry: Optional[FieldRegistry] = None):
        """
        Create API instance from environment variables.

        Uses Config helper to read environment variables.
        """
        return cls(registry=registry, **Config.from_env())

    async def initialize(self):
        """Create the preview table (no-op without a preview database)."""
        if self.store is not None:
            await self.store.initialize()

    # ========================================================================
    # Resolution and validation
    # ========================================================================

    def load_filters(self, filters: FiltersInput) -> AudienceFilters:
        """
        Normalize any accepted filter input to an AudienceFilters envelope.

        Accepts an AudienceFilters, its stored dict form, or a bare
        simple-mode dict.
        """
        if isinstance(filters, AudienceFilters):
            return filters
        if not filters:
            return AudienceFilters()
        if _ENVELOPE_KEYS & set(filters):
            return AudienceFilters.from_dict(filters, max_depth=self.max_depth,
                                             registry=self.registry)
        return AudienceFilters(mode=FilterMode.SIMPLE, simple=dict(filters))

    def resolve_expression(self, filters: FiltersInput) -> Group:
        """
        The authoritative expression for stored filters.

        Boolean mode with an expression uses it as is; anything else is
        adapted from the simple-mode object.
        """
        envelope = self.load_filters(filters)
        if envelope.mode == FilterMode.BOOLEAN and envelope.expression is not None:
            return envelope.expression
        return simple_to_boolean(envelope.simple, registry=self.registry)

    def validate(self, expression: Group) -> List[Violation]:
        """Validate an expression; an empty list means valid."""
        return self.validator.validate(expression)

    def validate_or_raise(self, expression: Group):
        """
        Raises:
            ValidationError: If the expression has any violation
        """
        violations = self.validate(expression)
        if violations:
            get_logging_manager().log_with_context(
                self.logger, logging.WARNING,
                f"Rejected expression with {len(violations)} violation(s)",
                {"violations": [v.message for v in violations]}
            )
            raise ValidationError(violations)

    # ========================================================================
    # Compilation
    # ========================================================================

    def compile(self, expression: Group) -> CompiledQueries:
        """
        Compile an expression for both backends.

        Args:
            expression: Root group

        Returns:
            CompiledQueries with the WHERE clause, its parameters and the
            search filter

        Raises:
            ValidationError: If strict validation is on and the expression
                has violations
        """
        if self.strict_validation:
            self.validate_or_raise(expression)

        where_clause, parameters = self.relational.convert(expression)
        search_filter = self.search.convert(expression)
        self.logger.debug(
            f"Compiled expression: where={where_clause!r} params={len(parameters)} "
            f"search={search_filter!r}"
        )
        return CompiledQueries(where_clause, parameters, search_filter)

    def compile_filters(self, filters: FiltersInput) -> CompiledQueries:
        """Resolve stored filters and compile them."""
        return self.compile(self.resolve_expression(filters))

    def describe(self, expression: Group) -> str:
        """Human-readable one-line rendering of an expression."""
        return describe(expression)

    # ========================================================================
    # Preview
    # ========================================================================

    def _require_store(self) -> PreviewStore:
        if self.store is None:
            raise StorageError("No preview database configured (set db_path or AUDIENCE_DB_PATH)")
        return self.store

    def _preview_query(self, filters: FiltersInput):
        expression = self.resolve_expression(filters)
        if self.strict_validation:
            self.validate_or_raise(expression)
        return self.preview_backend.convert(expression)

    async def preview(self, filters: FiltersInput, limit: int = 100, offset: int = 0,
                      select: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Preview one page of the audience.

        Args:
            filters: Stored filters, their dict form or a simple-mode dict
            limit: Page size (clamped by the store)
            offset: Rows to skip
            select: Columns to return (default: all)

        Returns:
            Dict with rows, limit and offset

        Raises:
            StorageError: If no preview database is configured
            ValidationError: If strict validation rejects the expression
            QueryError: If the query fails
        """
        store = self._require_store()
        where_clause, params = self._preview_query(filters)
        result = await store.run_preview(where_clause, params, limit=limit,
                                         offset=offset, select=select)
        self.logger.info(f"Preview returned {len(result['rows'])} rows")
        return result

    async def count(self, filters: FiltersInput) -> int:
        """Count the audience matching the filters."""
        store = self._require_store()
        where_clause, params = self._preview_query(filters)
        total = await store.get_total_count(where_clause, params)
        self.logger.info(f"Audience count: {total}")
        return total
