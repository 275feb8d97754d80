"""Display formatting for token counts, costs, and times."""

from datetime import datetime, timezone


def format_tokens(n) -> str:
    n = int(n)
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}k"
    return f"{n:,}"


def format_cost(c) -> str:
    if c >= 1:
        return f"${c:,.2f}"
    if c >= 0.01:
        return f"${c:.2f}"
    if c == 0:
        return "$0.00"
    return f"${c:.3f}"


def format_duration(minutes) -> str:
    h, m = divmod(int(minutes), 60)
    if h > 0:
        return f"{h}h {m}m"
    return f"{m}m"


def format_tokens_per_minute(v) -> str:
    return f"{format_tokens(v)}/min" if v > 0 else "--"


def format_cost_per_hour(v) -> str:
    if v <= 0:
        return "--"
    if v < 0.01:
        return "< $0.01/hr"
    return f"${v:.2f}/hr"


def format_percent(p) -> str:
    return f"{p:.1f}%"


def format_model_name(mid: str) -> str:
    """``claude-sonnet-4-5-20250929`` -> ``Sonnet 4.5``."""
    name = mid
    if name.startswith("claude-"):
        name = name[7:]
    parts = name.rsplit("-", 1)
    if len(parts) == 2 and len(parts[1]) >= 8 and parts[1][:8].isdigit():
        name = parts[0]
    segs = name.rsplit("-", 2)
    if (len(segs) >= 3 and segs[-1].isdigit() and len(segs[-1]) == 1
            and segs[-2].isdigit() and len(segs[-2]) == 1):
        base = "-".join(segs[:-2])
        return f"{base.replace('-', ' ').title()} {segs[-2]}.{segs[-1]}"
    return name.replace("-", " ").title()


def parse_iso(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_relative_time(ts: str | None, now: datetime | None = None) -> str:
    dt = parse_iso(ts)
    if dt is None:
        return "Never"
    now = now or datetime.now(timezone.utc)
    secs = (now - dt).total_seconds()
    mins = int(secs // 60)
    hours = int(secs // 3600)
    days = int(secs // 86400)
    if mins < 1:
        return "Just now"
    if mins < 60:
        return f"{mins} min ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if days < 7:
        return f"{days} day{'s' if days > 1 else ''} ago"
    return dt.astimezone().strftime("%Y-%m-%d")


def format_heartbeat_age(age_s: float | None) -> str:
    if age_s is None:
        return "waiting"
    if age_s < 60:
        return f"{int(age_s)}s ago"
    return f"{int(age_s // 60)}m ago"
