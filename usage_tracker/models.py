from enum import Enum

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Backend payloads are camelCase; accept either spelling, emit camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectStat(WireModel):
    project_path: str
    display_name: str = ""
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_cost_usd: float = 0.0
    message_count: int = 0
    session_count: int = 0
    first_activity: str | None = None
    last_activity: str | None = None

    @property
    def total_tokens(self) -> int:
        return (self.total_input_tokens + self.total_output_tokens
                + self.cache_creation_tokens + self.cache_read_tokens)


class DailyStat(WireModel):
    date: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    cost_usd: float = 0.0
    message_count: int = 0


class ModelStat(WireModel):
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0
    message_count: int = 0
    percentage: float = 0.0


class BurnRate(WireModel):
    tokens_per_minute: float = 0.0
    cost_per_hour: float = 0.0


class TodayStats(WireModel):
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    message_count: int = 0


class DataSourceInfo(WireModel):
    source_type: str = "jsonl"  # "jsonl" or "telemetry"
    display_name: str = "Local Files"
    icon: str = ""
    collector_port: int | None = None


class OverallStats(WireModel):
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    total_cost_usd: float = 0.0
    total_messages: int = 0
    total_sessions: int = 0
    project_count: int = 0
    model_distribution: list[ModelStat] = []
    session_start_time: str | None = None
    time_to_reset_minutes: int = 0
    burn_rate: BurnRate | None = None
    today_stats: TodayStats = TodayStats()


def normalize_daily(days: list[DailyStat]) -> list[DailyStat]:
    """One entry per date, ascending; a later duplicate replaces an earlier one."""
    by_date = {d.date: d for d in days}
    return [by_date[k] for k in sorted(by_date)]


_PROJECT_SORT_KEYS = {
    "cost": lambda p: p.total_cost_usd,
    "tokens": lambda p: p.total_input_tokens + p.total_output_tokens,
    "messages": lambda p: p.message_count,
    "sessions": lambda p: p.session_count,
    "name": lambda p: p.display_name.lower(),
    "last_activity": lambda p: p.last_activity or "",
}


class UsageSnapshot(WireModel):
    """Complete reconciled usage state.

    ``projects`` is a table keyed by project path and kept in key order, so
    nothing downstream can come to depend on the order the backend sent.
    On the wire it is a plain list.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    projects: dict[str, ProjectStat] = {}
    daily_usage: list[DailyStat] = []
    overall_stats: OverallStats = OverallStats()
    data_source: DataSourceInfo | None = None

    @field_validator("projects", mode="before")
    @classmethod
    def _key_projects(cls, value):
        if isinstance(value, dict):
            items = list(value.values())
        else:
            items = list(value or [])
        table = {}
        for item in items:
            p = item if isinstance(item, ProjectStat) else ProjectStat.model_validate(item)
            table[p.project_path] = p
        return dict(sorted(table.items()))

    @field_validator("daily_usage")
    @classmethod
    def _order_days(cls, value: list[DailyStat]) -> list[DailyStat]:
        return normalize_daily(value)

    @field_serializer("projects")
    def _projects_as_list(self, projects: dict[str, ProjectStat]) -> list[ProjectStat]:
        return list(projects.values())

    def project_list(self, sort_by: str = "cost", descending: bool = True,
                     search: str | None = None) -> list[ProjectStat]:
        """Projects in display order, optionally narrowed to a name or path substring."""
        try:
            key = _PROJECT_SORT_KEYS[sort_by]
        except KeyError:
            raise ValueError(f"Unknown project sort key: {sort_by}") from None
        rows = self.projects.values()
        if search:
            q = search.lower()
            rows = [p for p in rows if q in p.display_name.lower() or q in p.project_path.lower()]
        return sorted(rows, key=key, reverse=descending)

    def top_projects(self, n: int = 5) -> list[ProjectStat]:
        return self.project_list("cost")[:n]


class DeltaMessage(WireModel):
    """Partial update pushed by the backend. Never retracts anything."""

    has_changes: bool = False
    full_refresh: bool = False
    updated_projects: list[ProjectStat] = []
    overall_stats: OverallStats | None = None
    daily_usage: list[DailyStat] | None = None


class ViewMode(str, Enum):
    NORMAL = "normal"
    COMPACT = "compact"
    MINI = "mini"


class ActiveTab(str, Enum):
    OVERALL = "overall"
    PROJECTS = "projects"
