"""Apply a pushed delta to a snapshot."""

from .models import DeltaMessage, UsageSnapshot


def is_empty(delta: DeltaMessage) -> bool:
    """True when the delta carries nothing to apply."""
    return (not delta.updated_projects
            and delta.overall_stats is None
            and delta.daily_usage is None)


def merge(current: UsageSnapshot, delta: DeltaMessage) -> UsageSnapshot:
    """Return a new snapshot with ``delta`` applied to ``current``.

    Updated projects replace their previous record by ``project_path``; a
    duplicate identifier later in the same delta wins. Projects the delta
    does not mention are carried over, and none are ever removed.
    ``overall_stats`` and ``daily_usage`` are replaced wholesale when the
    delta has them. ``current`` is left untouched.

    Full-refresh deltas cannot be merged; the caller refetches instead.
    """
    if delta.full_refresh:
        raise ValueError("full-refresh delta must trigger a refetch, not a merge")

    projects = dict(current.projects)
    for p in delta.updated_projects:
        projects[p.project_path] = p

    return UsageSnapshot(
        projects=projects,
        daily_usage=delta.daily_usage if delta.daily_usage is not None else current.daily_usage,
        overall_stats=delta.overall_stats if delta.overall_stats is not None else current.overall_stats,
        data_source=current.data_source,
    )
