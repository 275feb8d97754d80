"""GET / - serves the dashboard rendered for the current view mode."""

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from .formatting import (
    format_cost, format_cost_per_hour, format_duration, format_heartbeat_age,
    format_model_name, format_percent, format_relative_time, format_tokens,
    format_tokens_per_minute,
)
from .models import UsageSnapshot, ViewMode

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))
templates.env.filters.update(
    tokens=format_tokens,
    cost=format_cost,
    model_name=format_model_name,
    percent=format_percent,
    relative=format_relative_time,
    duration=format_duration,
)

HM_COLORS = ["", "rgba(230,51,41,0.08)", "rgba(230,51,41,0.16)",
             "rgba(230,51,41,0.26)", "rgba(230,51,41,0.38)"]


def _overall_cards(snap: UsageSnapshot) -> list[tuple[str, str, str]]:
    o = snap.overall_stats
    t = o.today_stats
    br = o.burn_rate
    return [
        ("Total Cost", format_cost(o.total_cost_usd), ""),
        ("Total Tokens", format_tokens(o.total_input_tokens + o.total_output_tokens),
         f"In: {format_tokens(o.total_input_tokens)} / Out: {format_tokens(o.total_output_tokens)}"),
        ("Messages", f"{o.total_messages:,}", f"{o.total_sessions:,} sessions"),
        ("Cache Tokens", format_tokens(o.cache_creation_tokens + o.cache_read_tokens),
         f"Create: {format_tokens(o.cache_creation_tokens)} / Read: {format_tokens(o.cache_read_tokens)}"),
        ("Today Cost", format_cost(t.cost_usd), ""),
        ("Today Tokens", format_tokens(t.total_tokens),
         f"In: {format_tokens(t.input_tokens)} / Out: {format_tokens(t.output_tokens)}"),
        ("Burn Rate", format_tokens_per_minute(br.tokens_per_minute if br else 0), ""),
        ("Cost Rate", format_cost_per_hour(br.cost_per_hour if br else 0), ""),
    ]


def _daily_rows(snap: UsageSnapshot) -> list[dict]:
    max_day_cost = max((d.cost_usd for d in snap.daily_usage if d.cost_usd > 0), default=1.0)

    def row_hm_style(cost):
        if not cost:
            return ""
        p = cost / max_day_cost
        lvl = 1 if p < 0.25 else 2 if p < 0.55 else 3 if p < 0.80 else 4
        return f"background:{HM_COLORS[lvl]}"

    return [{"day": d, "style": row_hm_style(d.cost_usd)} for d in reversed(snap.daily_usage)]


@router.get("/", response_class=HTMLResponse)
async def dashboard(request: Request, sortBy: str = "cost", order: str = "desc",
                    search: str = ""):
    sync = request.app.state.sync
    view = request.app.state.view
    snap = sync.store.current

    ctx = {
        "request": request,
        "mode": view.mode.value,
        "tab": view.tab.value,
        "view": view.as_dict(),
        "sync": sync.status(),
        "snap": snap,
        "heartbeat": format_heartbeat_age(sync.heartbeat_age()),
        "sort_by": sortBy,
        "order": order,
        "search": search,
        "window_revision": getattr(request.app.state.window, "revision", None),
    }
    if snap is not None:
        try:
            projects = snap.project_list(sortBy, descending=(order != "asc"), search=search)
        except ValueError:
            projects = snap.project_list(search=search)
        ctx.update(
            cards=_overall_cards(snap),
            daily_rows=_daily_rows(snap),
            projects=projects,
            top_projects=snap.top_projects(5),
            today=snap.overall_stats.today_stats,
            data_source=snap.data_source,
        )
    if view.mode is ViewMode.MINI:
        template = "mini.html"
    elif view.mode is ViewMode.COMPACT:
        template = "compact.html"
    else:
        template = "dashboard.html"
    return templates.TemplateResponse(request, template, ctx)
