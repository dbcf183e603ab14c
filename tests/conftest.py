"""
Shared pytest fixtures for audience filter tests.
Provides common test infrastructure for all test suites.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from audience import AudienceFilterAPI
from audience.db.filters import (
    Category, FieldDefinition, FieldRegistry, FIELD_REGISTRY, ValueType
)


# ============================================================================
# Registry Fixtures
# ============================================================================

@pytest.fixture
def registry():
    """The bundled field registry."""
    return FIELD_REGISTRY


@pytest.fixture
def geo_registry():
    """A small registry with a search-indexed geo field."""
    return FieldRegistry.from_definitions([
        FieldDefinition(
            key="location.point",
            label="Point",
            category=Category.LOCATION,
            value_type=ValueType.GEO_RADIUS,
            allowed_operators=("withinRadius",),
            relational_mapper="location.point",
            search_mapper="location",
        ),
        FieldDefinition(
            key="contact.has_email",
            label="Has Email",
            category=Category.CONTACT,
            value_type=ValueType.BOOLEAN,
            allowed_operators=("isTrue", "isFalse"),
            relational_mapper="contact.has_email",
        ),
    ], version="test")


# ============================================================================
# API Fixtures
# ============================================================================

@pytest.fixture
def api():
    """AudienceFilterAPI without a preview database."""
    return AudienceFilterAPI()


@pytest_asyncio.fixture
async def preview_api():
    """AudienceFilterAPI backed by a temporary preview database with seed contacts."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "data", "preview.db")
        api = AudienceFilterAPI(db_path=db_path)
        await api.initialize()
        await api.store.add_contacts([
            {
                "business.company_name": "Acme Corp",
                "business.seniority": "cxo",
                "business.revenue": 2_000_000,
                "contact.has_email": True,
                "personal.age": 40,
                "location.geo_radius_km": {"lat": 30.27, "lng": -97.74},  # Austin
            },
            {
                "business.company_name": "Globex",
                "business.seniority": "vp",
                "business.revenue": 500_000,
                "contact.has_email": False,
                "personal.age": 30,
                "location.geo_radius_km": {"lat": 40.71, "lng": -74.0},  # New York
            },
            {
                "business.company_name": "acme labs",
                "business.seniority": "staff",
                "business.revenue": 8_000_000,
                "contact.has_email": True,
                "personal.age": 55,
            },
        ])
        yield api
