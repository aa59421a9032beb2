#!/usr/bin/env python3
"""
Unit tests for query templates, the query pool and pool loading.
"""

import json
import random
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from pydantic import ValidationError

from explainlab.config import Settings
from explainlab.core.query_pool import build_pool, default_pool, load_pool_file
from explainlab.exceptions import QueryPoolError, UnknownQueryError
from explainlab.models import ParamRange, Protocol, QueryPool, QueryTemplate, split_placeholders


def test_split_placeholders_ignores_string_literals():
    segments = split_placeholders("SELECT '?' AS q, id FROM t WHERE a = ? AND b = ?")
    assert segments == ["SELECT '?' AS q, id FROM t WHERE a = ", " AND b = ", ""]


def test_split_placeholders_without_placeholders():
    assert split_placeholders("SELECT 1") == ["SELECT 1"]


def test_param_range_rejects_inverted_bounds():
    with pytest.raises(ValidationError):
        ParamRange(low=10, high=1)


def test_template_placeholder_count_must_match_params():
    with pytest.raises(ValidationError):
        QueryTemplate(name="bad", sql="SELECT * FROM users WHERE id = ?")

    with pytest.raises(ValidationError):
        QueryTemplate(
            name="bad",
            sql="SELECT 1",
            params=(ParamRange(low=1, high=2),),
        )


def test_template_is_immutable():
    template = QueryTemplate(name="one", sql="SELECT 1")
    with pytest.raises(ValidationError):
        template.sql = "SELECT 2"


def test_pool_rejects_duplicate_names():
    with pytest.raises(ValidationError):
        QueryPool(
            templates=(
                QueryTemplate(name="dup", sql="SELECT 1"),
                QueryTemplate(name="dup", sql="SELECT 2"),
            )
        )


def test_pool_rejects_empty():
    with pytest.raises(ValidationError):
        QueryPool(templates=())


def test_pool_get_and_unknown_name():
    pool = default_pool()
    assert pool.get("restricted").expect_error is True
    with pytest.raises(UnknownQueryError):
        pool.get("no_such_query")


def test_pool_choose_only_returns_pool_members():
    pool = default_pool()
    rng = random.Random(7)
    names = set(pool.names())
    picked = {pool.choose(rng).name for _ in range(200)}
    assert picked <= names
    # 200 uniform draws over 10 templates should reach most of them.
    assert len(picked) >= len(names) - 2


def test_default_pool_covers_both_protocols_and_failures():
    pool = default_pool()
    protocols = {t.protocol for t in pool.templates}
    assert protocols == {Protocol.EXTENDED, Protocol.SIMPLE}
    assert any(t.expect_error for t in pool.templates)
    assert "restricted" in pool.names()


def test_load_pool_file(tmp_path):
    path = tmp_path / "pool.json"
    path.write_text(
        json.dumps(
            {
                "templates": [
                    {
                        "name": "custom",
                        "sql": "SELECT * FROM widgets WHERE id = ?",
                        "params": [{"low": 1, "high": 5}],
                        "protocol": "simple",
                    },
                    {"name": "restricted", "sql": "SELECT * FROM vault", "expect_error": True},
                ]
            }
        )
    )

    pool = load_pool_file(path)

    assert pool.names() == ["custom", "restricted"]
    assert pool.get("custom").protocol is Protocol.SIMPLE
    assert pool.get("custom").params == (ParamRange(low=1, high=5),)


def test_load_pool_file_errors(tmp_path):
    with pytest.raises(QueryPoolError):
        load_pool_file(tmp_path / "missing.json")

    not_json = tmp_path / "bad.json"
    not_json.write_text("{not json")
    with pytest.raises(QueryPoolError):
        load_pool_file(not_json)

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"templates": [{"name": "x", "sql": "SELECT ?"}]}))
    with pytest.raises(QueryPoolError):
        load_pool_file(invalid)


def test_build_pool_prefers_configured_file(tmp_path):
    path = tmp_path / "pool.json"
    path.write_text(json.dumps({"templates": [{"name": "only", "sql": "SELECT 1"}]}))

    assert build_pool(Settings(TRAFFIC_QUERY_POOL_FILE=str(path))).names() == ["only"]
    assert build_pool(Settings(TRAFFIC_QUERY_POOL_FILE="")) == default_pool()


def test_orders_window_uses_single_start_parameter():
    template = default_pool().get("orders_with_users")
    assert len(template.params) == 1
    assert "LIMIT 25" in template.sql
