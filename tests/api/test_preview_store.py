#!/usr/bin/env python3
"""
Tests for previewing compiled audiences against SQLite.
"""

import os
import tempfile

import pytest

from audience import QueryError, StorageError
from audience.db import PreviewStore, aconnect
from audience.db.preview_store import earth_distance, ll_to_earth


def boolean(*children, op="AND", negated=False):
    expression = {"kind": "group", "op": op, "children": list(children)}
    if negated:
        expression["not"] = True
    return {"mode": "boolean", "boolean": {"expression": expression}}


def condition(field, op, value=None, negated=False):
    data = {"kind": "condition", "field": field, "op": op, "value": value}
    if negated:
        data["not"] = True
    return data


def companies(result):
    return [row["business.company_name"] for row in result["rows"]]


class TestGeoFunctions:
    """Test the SQL functions backing the radius predicate."""

    def test_ll_to_earth(self):
        assert ll_to_earth(30, -97.5) == "30.0,-97.5"
        assert ll_to_earth(None, 1) is None

    def test_earth_distance(self):
        austin, new_york = ll_to_earth(30.27, -97.74), ll_to_earth(40.71, -74.0)
        assert 2_300_000 < earth_distance(austin, new_york) < 2_600_000
        assert earth_distance(austin, austin) == pytest.approx(0.0)

    def test_earth_distance_missing_points(self):
        assert earth_distance(None, "1,2") is None
        assert earth_distance("1,2", "garbage") is None

    @pytest.mark.asyncio
    async def test_functions_registered_on_connection(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = PreviewStore(os.path.join(tmpdir, "geo.db"))
            async with aconnect(store.db_path, functions=store.sql_functions) as conn:
                cursor = await conn.execute("SELECT ll_to_earth(?, ?)", (1, 2))
                assert (await cursor.fetchone())[0] == "1.0,2.0"


class TestPreview:
    """Test preview and count through the API."""

    @pytest.mark.asyncio
    async def test_count_all(self, preview_api):
        assert await preview_api.count({}) == 3

    @pytest.mark.asyncio
    async def test_contains_is_case_insensitive(self, preview_api):
        filters = boolean(condition("business.company_name", "contains", "acme"))
        assert await preview_api.count(filters) == 2

    @pytest.mark.asyncio
    async def test_preview_rows(self, preview_api):
        filters = boolean(condition("business.seniority", "in", ["cxo", "vp"]))
        result = await preview_api.preview(filters)
        assert companies(result) == ["Acme Corp", "Globex"]
        assert result["limit"] == 100
        assert result["offset"] == 0
        assert result["rows"][0]["business.revenue"] == 2_000_000

    @pytest.mark.asyncio
    async def test_toggle_from_simple_filters(self, preview_api):
        assert await preview_api.count({"contact": {"hasEmail": True}}) == 2
        assert await preview_api.count({"contact": {"hasEmail": False}}) == 1

    @pytest.mark.asyncio
    async def test_range_and_negation(self, preview_api):
        filters = boolean(
            condition("business.revenue", "between", [1_000_000, 10_000_000]),
            condition("personal.age", "between", [50, 60], negated=True),
        )
        result = await preview_api.preview(filters)
        assert companies(result) == ["Acme Corp"]

    @pytest.mark.asyncio
    async def test_single_bound_on_range_field(self, preview_api):
        filters = boolean(condition("personal.age", "gte", 50))
        result = await preview_api.preview(filters)
        assert companies(result) == ["acme labs"]

    @pytest.mark.asyncio
    async def test_negated_or_group(self, preview_api):
        filters = boolean(
            condition("business.seniority", "in", ["cxo"]),
            condition("business.seniority", "in", ["vp"]),
            op="OR", negated=True,
        )
        result = await preview_api.preview(filters)
        assert companies(result) == ["acme labs"]

    @pytest.mark.asyncio
    async def test_within_radius(self, preview_api):
        near_austin = {"lat": 30.3, "lng": -97.7, "radiusKm": 50}
        filters = boolean(condition("location.geo_radius_km", "withinRadius", near_austin))
        result = await preview_api.preview(filters)
        assert companies(result) == ["Acme Corp"]

    @pytest.mark.asyncio
    async def test_limit_and_offset_clamped(self, preview_api):
        result = await preview_api.preview({}, limit=5000, offset=-3)
        assert result["limit"] == 1000
        assert result["offset"] == 0
        assert len(result["rows"]) == 3

        page = await preview_api.preview({}, limit=1, offset=1)
        assert companies(page) == ["Globex"]

    @pytest.mark.asyncio
    async def test_select_columns(self, preview_api):
        result = await preview_api.preview({}, limit=2, select=["business.company_name"])
        assert result["rows"] == [
            {"business.company_name": "Acme Corp"},
            {"business.company_name": "Globex"},
        ]

    @pytest.mark.asyncio
    async def test_invalid_filters_rejected(self, preview_api):
        from audience import ValidationError
        with pytest.raises(ValidationError):
            await preview_api.count(boolean(condition("business.shoe_size", "eq", 11)))


class TestPreviewStore:
    """Test the store directly."""

    @pytest.mark.asyncio
    async def test_bad_clause_raises_query_error(self, preview_api):
        with pytest.raises(QueryError):
            await preview_api.store.run_preview("no_such_column = ?", [1])
        with pytest.raises(QueryError):
            await preview_api.store.get_total_count("((", [])

    @pytest.mark.asyncio
    async def test_unknown_contact_column(self, preview_api):
        with pytest.raises(StorageError, match="Unknown contact columns"):
            await preview_api.store.add_contacts([{"shoe_size": 11}])

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, preview_api):
        await preview_api.initialize()
        assert await preview_api.count({}) == 3

    @pytest.mark.asyncio
    async def test_custom_table(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = PreviewStore(os.path.join(tmpdir, "custom.db"), table="people")
            await store.initialize()
            assert await store.add_contacts([{"personal.age": 33}, {"personal.age": 70}]) == 2
            assert await store.get_total_count('"personal.age" > ?', [40]) == 1
