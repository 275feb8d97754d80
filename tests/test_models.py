"""Wire format and snapshot normalization."""

import json

import pytest

from conftest import make_project, make_snapshot
from usage_tracker.models import DeltaMessage, UsageSnapshot

BACKEND_JSON = {
    "projects": [
        {"projectPath": "/b", "displayName": "b", "totalInputTokens": 10, "totalCostUsd": 1.5},
        {"projectPath": "/a", "displayName": "a", "totalOutputTokens": 20, "totalCostUsd": 0.5,
         "firstActivity": None, "lastActivity": "2026-10-17T09:00:00Z"},
    ],
    "dailyUsage": [
        {"date": "2026-10-17", "costUsd": 2.0, "messageCount": 3},
        {"date": "2026-10-15", "costUsd": 1.0},
    ],
    "overallStats": {
        "totalCostUsd": 2.0,
        "projectCount": 2,
        "modelDistribution": [{"model": "claude-sonnet-4-5-20250929", "totalTokens": 30, "percentage": 100.0}],
        "burnRate": {"tokensPerMinute": 120.0, "costPerHour": 0.4},
        "todayStats": {"costUsd": 2.0, "totalTokens": 30},
    },
    "dataSource": {"sourceType": "telemetry", "displayName": "Telemetry", "collectorPort": 4318},
}


def test_snapshot_parses_camel_case():
    snap = UsageSnapshot.model_validate(BACKEND_JSON)
    assert set(snap.projects) == {"/a", "/b"}
    assert snap.projects["/a"].last_activity == "2026-10-17T09:00:00Z"
    assert snap.overall_stats.burn_rate.cost_per_hour == 0.4
    assert snap.overall_stats.model_distribution[0].percentage == 100.0
    assert snap.data_source.collector_port == 4318


def test_projects_table_is_key_ordered():
    snap = UsageSnapshot.model_validate(BACKEND_JSON)
    assert list(snap.projects) == ["/a", "/b"]


def test_daily_usage_sorted_and_deduplicated():
    snap = UsageSnapshot.model_validate({
        "dailyUsage": [
            {"date": "2026-10-17", "costUsd": 1.0},
            {"date": "2026-10-15", "costUsd": 1.0},
            {"date": "2026-10-17", "costUsd": 5.0},
        ]
    })
    assert [d.date for d in snap.daily_usage] == ["2026-10-15", "2026-10-17"]
    assert snap.daily_usage[-1].cost_usd == 5.0


def test_snapshot_serializes_projects_as_camel_case_list():
    snap = UsageSnapshot.model_validate(BACKEND_JSON)
    out = json.loads(snap.model_dump_json(by_alias=True))
    assert isinstance(out["projects"], list)
    assert out["projects"][0]["projectPath"] == "/a"
    assert "totalCostUsd" in out["overallStats"]
    assert UsageSnapshot.model_validate(out) == snap


def test_snapshot_is_immutable():
    snap = make_snapshot()
    with pytest.raises(Exception):
        snap.overall_stats = None


def test_delta_defaults_from_heartbeat_payload():
    delta = DeltaMessage.model_validate_json('{"hasChanges": false}')
    assert not delta.has_changes
    assert not delta.full_refresh
    assert delta.updated_projects == []
    assert delta.overall_stats is None
    assert delta.daily_usage is None


def test_project_list_sorting():
    snap = make_snapshot(projects=[
        make_project("/p/one", cost=1.0, tokens=500, messages=9),
        make_project("/p/two", cost=3.0, tokens=100, messages=2),
        make_project("/p/three", cost=2.0, tokens=900, messages=5),
    ])
    assert [p.display_name for p in snap.project_list()] == ["two", "three", "one"]
    assert [p.display_name for p in snap.project_list("tokens")] == ["three", "one", "two"]
    assert [p.display_name for p in snap.project_list("name", descending=False)] == ["one", "three", "two"]
    assert [p.display_name for p in snap.top_projects(2)] == ["two", "three"]


def test_project_list_rejects_unknown_key():
    with pytest.raises(ValueError):
        make_snapshot().project_list("size")


def test_project_total_tokens():
    p = make_project("/p", tokens=100, total_output_tokens=50, cache_read_tokens=25)
    assert p.total_tokens == 175


def test_token_sort_ignores_cache_tokens():
    snap = make_snapshot(projects=[
        make_project("/p/cached", tokens=100, cache_read_tokens=10_000),
        make_project("/p/busy", tokens=500),
    ])
    assert [p.display_name for p in snap.project_list("tokens")] == ["busy", "cached"]


def test_project_list_search_matches_name_or_path():
    snap = make_snapshot(projects=[
        make_project("/home/me/Website", cost=1.0),
        make_project("/srv/api", cost=2.0, display_name="Backend"),
    ])
    assert [p.project_path for p in snap.project_list(search="web")] == ["/home/me/Website"]
    assert [p.project_path for p in snap.project_list(search="BACK")] == ["/srv/api"]
    assert [p.project_path for p in snap.project_list(search="srv")] == ["/srv/api"]
    assert len(snap.project_list(search="")) == 2
    assert snap.project_list(search="nothing") == []
