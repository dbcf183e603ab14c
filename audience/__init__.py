"""
Audience Filter API
Compiles audience filter expressions into relational WHERE clauses and
Typesense search filters.
"""

from .audience_api import AudienceFilterAPI
from .models import AudienceFilters, CompiledQueries, FilterMode
from .exceptions import AudienceError, StorageError, QueryError, ValidationError, ConfigError
from .config import Config

__version__ = "1.0.0"

__all__ = [
    "AudienceFilterAPI",
    "AudienceFilters",
    "CompiledQueries",
    "FilterMode",
    "AudienceError",
    "StorageError",
    "QueryError",
    "ValidationError",
    "ConfigError",
    "Config"
]
