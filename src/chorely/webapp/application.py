"""FastAPI frontend for the Chorely household task tracker.

Family members sign in with their login and the shared household password,
pick today's tasks from the templates assigned to them and mark them done or
move them to the next day.  Parents manage users, task templates and weekday
quotas from the admin screen; the calendar and statistics screens summarise
completion history month by month.  Served with ``uvicorn chorely.webapp:app``.
"""

from __future__ import annotations

from datetime import date, datetime
from html import escape as html_escape
from typing import Callable, List, Optional, Tuple, TypeVar

from fastapi import FastAPI, Form, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware

from ..exceptions import AuthenticationError, ChorelyError
from ..models import CalendarDay, SlotStatus, TaskStatus, User, UserRole
from ..ops import HealthMonitor, StructuredLogger
from ..service import ChoreTracker
from ..stats import parse_month, shift_month
from ..tasks import Weekday, clamp_tasks_required
from .config import (
    HISTORY_START_DATE,
    LOG_PATH,
    SEED_DEFAULTS,
    SESSION_ADMIN_KEY,
    SESSION_NOTICE_KEY,
    SESSION_NOTICE_KIND_KEY,
    SESSION_SECRET,
    SESSION_USER_KEY,
    SHARED_PASSWORD,
)
from .persistence import engine
from .repository import SqlStore

T = TypeVar("T")

# ---------------------------------------------------------------------------
# FastAPI application setup
# ---------------------------------------------------------------------------
app = FastAPI(title="Chorely")
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    same_site="lax",
    max_age=None,
)

logger = StructuredLogger(path=LOG_PATH)
health = HealthMonitor()
store = SqlStore(engine)
tracker = ChoreTracker(store, password=SHARED_PASSWORD, logger=logger)

_time_provider: Callable[[], datetime] = datetime.now

STORE_ERROR_MESSAGE = "Could not reach the database. Please try again."


def now_local() -> datetime:
    """Return naive local time using the configured provider."""

    return _time_provider()


def today_local() -> date:
    return now_local().date()


def ensure_default_data() -> bool:
    try:
        seeded = tracker.seed_defaults()
    except SQLAlchemyError as exc:
        logger.error("seed_failed", exc)
        health.record_failure(str(exc))
        return False
    health.record_success()
    return seeded


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------
def set_notice(request: Request, message: str, kind: str = "info") -> None:
    request.session[SESSION_NOTICE_KEY] = message
    request.session[SESSION_NOTICE_KIND_KEY] = kind


def pop_notice(request: Request) -> Tuple[Optional[str], str]:
    message = request.session.pop(SESSION_NOTICE_KEY, None)
    kind = request.session.pop(SESSION_NOTICE_KIND_KEY, "info")
    return message, kind


def current_user(request: Request) -> Optional[User]:
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        return None
    try:
        user = tracker.store.get_user(user_id)
    except SQLAlchemyError as exc:
        logger.error("store_error", exc, action="load_session_user")
        health.record_failure(str(exc))
        return None
    if user is None:
        request.session.pop(SESSION_USER_KEY, None)
        request.session.pop(SESSION_ADMIN_KEY, None)
    return user


def require_user(request: Request) -> Optional[RedirectResponse]:
    if current_user(request) is None:
        return RedirectResponse("/login", status_code=302)
    return None


def admin_authorized(request: Request, user: Optional[User] = None) -> bool:
    user = user or current_user(request)
    if user is None:
        return False
    return user.is_parent or bool(request.session.get(SESSION_ADMIN_KEY))


def require_admin(request: Request) -> Optional[RedirectResponse]:
    user = current_user(request)
    if user is None:
        return RedirectResponse("/login", status_code=302)
    if not admin_authorized(request, user):
        return RedirectResponse("/admin", status_code=302)
    return None


def run_action(request: Request, action: str, func: Callable[[], T]) -> Optional[T]:
    """Run a state change, turning failures into a one-shot notice."""

    try:
        result = func()
    except ChorelyError as exc:
        set_notice(request, str(exc), "error")
        return None
    except SQLAlchemyError as exc:
        logger.error("store_error", exc, action=action)
        health.record_failure(str(exc))
        set_notice(request, STORE_ERROR_MESSAGE, "error")
        return None
    health.record_success()
    return result


# ---------------------------------------------------------------------------
# HTML helpers
# ---------------------------------------------------------------------------
def base_styles() -> str:
    return """
<style>
:root{--accent:#667eea;--ok:#10b981;--warn:#f59e0b;--bad:#ef4444;--muted:#666;}
*{box-sizing:border-box;}
body{font-family:system-ui,-apple-system,'Segoe UI',Roboto,sans-serif;background:#f5f5f5;color:#333;margin:0;}
main{max-width:1200px;margin:0 auto;padding:0 16px 32px;}
h1{font-size:2rem;margin:0 0 1.5rem;}
h2{font-size:1.25rem;margin:0 0 1rem;}
.card{background:#fff;padding:1.5rem;border-radius:8px;box-shadow:0 2px 4px rgba(0,0,0,0.1);margin-bottom:1.5rem;}
.nav{background:#fff;padding:1rem 2rem;box-shadow:0 2px 4px rgba(0,0,0,0.1);margin-bottom:2rem;}
.nav__inner{display:flex;justify-content:space-between;align-items:center;max-width:1200px;margin:0 auto;}
.nav a{color:var(--muted);text-decoration:none;margin-right:1.5rem;}
.nav a.active{color:var(--accent);font-weight:bold;}
.muted{color:var(--muted);}
.grid{display:grid;grid-template-columns:repeat(auto-fit,minmax(200px,1fr));gap:1rem;}
.metric{font-size:1.5rem;font-weight:bold;}
button{padding:0.5rem 1rem;border:none;border-radius:4px;cursor:pointer;font-weight:bold;background:var(--accent);color:#fff;}
button.secondary{background:#f5f5f5;color:var(--muted);border:1px solid #ddd;font-weight:normal;}
button.ok{background:var(--ok);}
button.warn{background:var(--warn);}
input,select,textarea{padding:0.5rem;border:1px solid #ddd;border-radius:4px;font-size:1rem;}
table{width:100%;border-collapse:collapse;}
th,td{padding:0.75rem;border-bottom:1px solid #e5e7eb;text-align:left;vertical-align:top;}
.notice{padding:0.75rem 1rem;border-radius:4px;margin-bottom:1rem;}
.notice--info{background:#f0f9ff;}
.notice--success{background:#f0fdf4;color:#166534;}
.notice--error{background:#fee;color:#c33;}
.task{padding:1rem;border:1px solid #e5e7eb;border-radius:4px;display:flex;justify-content:space-between;align-items:center;margin-bottom:0.75rem;}
.task--done{background:#f0fdf4;}
.task--moved{background:#fef3c7;}
.inline{display:inline-flex;gap:0.5rem;align-items:center;margin:0;}
.cal{display:grid;grid-template-columns:repeat(7,1fr);gap:0.5rem;}
.cal__head{text-align:center;font-weight:bold;color:var(--muted);}
.cal__day{min-height:100px;border:1px solid #e5e7eb;border-radius:4px;padding:0.4rem;font-size:0.75rem;background:#fff;}
.cal__day--today{border:2px solid var(--accent);}
.cal__day--history{background:#f9fafb;opacity:0.7;}
.slot{border-radius:3px;padding:2px 4px;margin-top:2px;background:#f3f4f6;}
.slot--done{background:#dcfce7;}
.slot--failed{background:#fee2e2;border:1px solid var(--bad);}
.slot--moved{background:#fef3c7;}
.slot--carried{background:#fff7ed;border:1px dashed var(--warn);}
.band--good{color:var(--ok);font-weight:bold;}
.band--warning{color:var(--warn);font-weight:bold;}
.band--poor{color:var(--bad);font-weight:bold;}
.tabs a{display:inline-block;padding:0.75rem 1.5rem;text-decoration:none;color:var(--muted);}
.tabs a.active{background:var(--accent);color:#fff;font-weight:bold;border-radius:4px 4px 0 0;}
</style>
"""


def frame(title: str, inner: str) -> str:
    return (
        "<html><head><meta charset='utf-8'><meta name='viewport' "
        f"content='width=device-width,initial-scale=1'><title>{html_escape(title)}</title>"
        f"{base_styles()}</head><body>{inner}</body></html>"
    )


def notice_html(request: Request) -> str:
    message, kind = pop_notice(request)
    if not message:
        return ""
    return f"<div class='notice notice--{html_escape(kind)}'>{html_escape(message)}</div>"


def nav_html(user: Optional[User], active: str, *, show_admin: bool = False) -> str:
    links = [("today", "/today", "Today"), ("calendar", "/calendar", "Calendar"), ("stats", "/stats", "Statistics")]
    if show_admin or (user is not None and user.is_parent):
        links.append(("admin", "/admin", "Admin"))
    anchors = "".join(
        f"<a href='{href}' class='{'active' if key == active else ''}'>{label}</a>" for key, href, label in links
    )
    name = html_escape(user.name) if user else ""
    return (
        "<nav class='nav'><div class='nav__inner'>"
        f"<div>{anchors}</div>"
        f"<div class='inline'><span class='muted'>{name}</span>"
        "<form method='post' action='/logout' class='inline'>"
        "<button type='submit' class='secondary'>Sign out</button></form></div>"
        "</div></nav>"
    )


def render_page(
    request: Request,
    title: str,
    inner: str,
    *,
    user: Optional[User] = None,
    active: str = "",
    status_code: int = 200,
) -> HTMLResponse:
    nav = nav_html(user, active, show_admin=active == "admin") if user else ""
    body = f"{nav}<main>{notice_html(request)}{inner}</main>"
    return HTMLResponse(frame(title, body), status_code=status_code)


def month_label(year: int, month: int) -> str:
    return date(year, month, 1).strftime("%B %Y")


def month_param(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_switcher(base_path: str, year: int, month: int, extra_query: str = "") -> str:
    prev_year, prev_month = shift_month(year, month, -1)
    next_year, next_month = shift_month(year, month, 1)
    suffix = f"&{extra_query}" if extra_query else ""
    return (
        "<div class='card' style='display:flex;justify-content:space-between;align-items:center;'>"
        f"<a href='{base_path}?month={month_param(prev_year, prev_month)}{suffix}'>"
        "<button class='secondary'>&larr;</button></a>"
        f"<h2 style='margin:0;'>{month_label(year, month)}</h2>"
        f"<a href='{base_path}?month={month_param(next_year, next_month)}{suffix}'>"
        "<button class='secondary'>&rarr;</button></a>"
        "</div>"
    )


def store_failure_page(request: Request, exc: SQLAlchemyError, action: str, user: Optional[User]) -> HTMLResponse:
    logger.error("store_error", exc, action=action)
    health.record_failure(str(exc))
    inner = f"<div class='card'><div class='notice notice--error'>{STORE_ERROR_MESSAGE}</div></div>"
    return render_page(request, "Chorely", inner, user=user, status_code=503)


# ---------------------------------------------------------------------------
# Sign-in routes
# ---------------------------------------------------------------------------
@app.get("/", response_class=HTMLResponse)
def landing(request: Request):
    if current_user(request) is not None:
        return RedirectResponse("/today", status_code=302)
    return RedirectResponse("/login", status_code=302)


def _login_form(error: str = "") -> str:
    error_html = f"<div class='notice notice--error'>{html_escape(error)}</div>" if error else ""
    return f"""
    <div class='card' style='max-width:400px;margin:4rem auto;'>
      <h1 style='text-align:center;'>Sign in</h1>
      <form method='post' action='/login'>
        <label>Login</label><br><input name='login' required style='width:100%;'><br><br>
        <label>Password</label><br><input name='password' type='password' required style='width:100%;'><br><br>
        {error_html}
        <button type='submit' style='width:100%;'>Sign in</button>
      </form>
    </div>
    """


@app.get("/login", response_class=HTMLResponse)
def login_page(request: Request):
    if current_user(request) is not None:
        return RedirectResponse("/today", status_code=302)
    return render_page(request, "Chorely · Sign in", _login_form())


@app.post("/login")
def login(request: Request, login: str = Form(...), password: str = Form(...)):
    try:
        user = tracker.authenticate(login, password)
    except AuthenticationError as exc:
        return render_page(request, "Chorely · Sign in", _login_form(str(exc)), status_code=401)
    except SQLAlchemyError as exc:
        return store_failure_page(request, exc, "login", None)
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id
    return RedirectResponse("/today", status_code=302)


@app.post("/logout")
def logout(request: Request):
    user_id = request.session.get(SESSION_USER_KEY)
    request.session.clear()
    if user_id:
        logger.log("logout", user=user_id)
    return RedirectResponse("/login", status_code=302)


# ---------------------------------------------------------------------------
# Today
# ---------------------------------------------------------------------------
_STATUS_LABELS = {
    TaskStatus.PENDING: "In progress",
    TaskStatus.DONE: "Done",
    TaskStatus.MOVED: "Moved",
}


@app.get("/today", response_class=HTMLResponse)
def today_page(request: Request):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    today = today_local()
    try:
        summary = tracker.day_summary(user.id, today)
        instances = tracker.instances_for(user.id, today)
        unused = tracker.unused_templates(user.id, today)
        templates = {template.id: template for template in tracker.list_templates()}
    except SQLAlchemyError as exc:
        return store_failure_page(request, exc, "today", user)

    plan = f"""
    <div class='card'>
      <h2>Plan for today</h2>
      <div class='grid'>
        <div><div class='muted'>Tasks planned</div><div class='metric' style='color:var(--accent);'>{summary.tasks_required}</div></div>
        <div><div class='muted'>Picked</div><div class='metric'>{summary.picked}</div></div>
        <div><div class='muted'>Done</div><div class='metric' style='color:var(--ok);'>{summary.done}</div></div>
      </div>
    """
    if summary.tasks_required > 0:
        plan += (
            "<div class='notice notice--info' style='margin-top:1rem;'>"
            f"<strong>Done {summary.completion_text} planned</strong></div>"
        )
    plan += "</div>"

    picker = ""
    if unused:
        options = "".join(
            f"<option value='{html_escape(template.id)}'>{html_escape(template.title)}</option>" for template in unused
        )
        picker = f"""
        <div class='card'>
          <h2>Add a task for today</h2>
          <form method='post' action='/today/add' class='inline' style='width:100%;'>
            <select name='template_id' required style='flex:1;'>
              <option value=''>Choose a task...</option>{options}
            </select>
            <button type='submit'>Add</button>
          </form>
        </div>
        """

    if instances:
        rows: List[str] = []
        for instance in instances:
            template = templates.get(instance.template_id)
            title = html_escape(template.title) if template else "Unknown task"
            condition = (
                f"<div class='muted'>{html_escape(template.condition)}</div>"
                if template is not None and template.condition
                else ""
            )
            status_text = _STATUS_LABELS[instance.status]
            if instance.move_count > 0:
                status_text += f" (moved {instance.move_count}x)"
            actions = ""
            if instance.status is TaskStatus.PENDING:
                actions = f"""
                <div class='inline'>
                  <form method='post' action='/today/done' class='inline'>
                    <input type='hidden' name='instance_id' value='{html_escape(instance.id)}'>
                    <button type='submit' class='ok'>Done</button>
                  </form>
                  <form method='post' action='/today/move' class='inline'>
                    <input type='hidden' name='instance_id' value='{html_escape(instance.id)}'>
                    <button type='submit' class='warn'>Move to tomorrow</button>
                  </form>
                </div>
                """
            rows.append(
                f"<div class='task task--{instance.status.value}'>"
                f"<div><strong>{title}</strong>{condition}<div class='muted'>{status_text}</div></div>"
                f"{actions}</div>"
            )
        task_list = f"<div class='card'><h2>My tasks</h2>{''.join(rows)}</div>"
    else:
        task_list = (
            "<div class='card muted' style='text-align:center;'>"
            "No tasks for today yet. Add one from the list above.</div>"
        )

    inner = f"<h1>My tasks today</h1>{plan}{picker}{task_list}"
    return render_page(request, "Chorely · Today", inner, user=user, active="today")


@app.post("/today/add")
def today_add(request: Request, template_id: str = Form("")):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    if not template_id.strip():
        set_notice(request, "Choose a task first.", "error")
        return RedirectResponse("/today", status_code=302)
    run_action(request, "pick_task", lambda: tracker.pick_task(user.id, template_id.strip(), today_local()))
    return RedirectResponse("/today", status_code=302)


def _own_instance(request: Request, user: User, instance_id: str) -> bool:
    instance = run_action(request, "load_task", lambda: tracker.get_instance(instance_id))
    if instance is None:
        return False
    if instance.user_id != user.id:
        set_notice(request, "That task belongs to someone else.", "error")
        return False
    return True


@app.post("/today/done")
def today_done(request: Request, instance_id: str = Form(...)):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    if _own_instance(request, user, instance_id):
        if run_action(request, "mark_done", lambda: tracker.mark_done(instance_id)) is not None:
            set_notice(request, "Well done! 🎉", "success")
    return RedirectResponse("/today", status_code=302)


@app.post("/today/move")
def today_move(request: Request, instance_id: str = Form(...)):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    if _own_instance(request, user, instance_id):
        if run_action(request, "move_task", lambda: tracker.move_to_next_day(instance_id)) is not None:
            set_notice(request, "Task moved to the next day.", "info")
    return RedirectResponse("/today", status_code=302)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------
_SLOT_ICONS = {
    SlotStatus.DONE: "✅",
    SlotStatus.PENDING: "⏳",
    SlotStatus.MOVED: "➡️",
    SlotStatus.EMPTY: "❓",
    SlotStatus.FAILED: "❌",
}


def _calendar_cell(info: CalendarDay) -> str:
    classes = ["cal__day"]
    if info.is_today:
        classes.append("cal__day--today")
    if info.before_history:
        classes.append("cal__day--history")
    header = f"<div><strong>{info.day.day}</strong></div>"
    carried = f" +{info.carried} moved in" if info.carried else ""
    if info.required > 0:
        header += f"<div class='muted'>{info.done}/{info.required}{carried}</div>"
    elif carried:
        header += f"<div class='muted'>{carried.strip()}</div>"
    slots = []
    for slot in info.slots:
        css = "slot--carried" if slot.carried else f"slot--{slot.status.value}"
        label = f"{html_escape(slot.title)}: " if slot.title else ""
        slots.append(f"<div class='slot {css}'>{label}{_SLOT_ICONS[slot.status]}</div>")
    return f"<div class='{' '.join(classes)}'>{header}{''.join(slots)}</div>"


@app.get("/calendar", response_class=HTMLResponse)
def calendar_page(request: Request, user_id: Optional[str] = Query(None), month: Optional[str] = Query(None)):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    today = today_local()
    year, month_number = parse_month(month, today)
    try:
        users = tracker.list_users()
        selected_id = user_id if user_id and any(u.id == user_id for u in users) else user.id
        grid = tracker.calendar_month(
            selected_id,
            year,
            month_number,
            today=today,
            history_start=HISTORY_START_DATE,
        )
    except SQLAlchemyError as exc:
        return store_failure_page(request, exc, "calendar", user)

    picker = "".join(
        f"<a href='/calendar?user_id={html_escape(u.id)}&month={month_param(year, month_number)}'>"
        f"<button class='{'' if u.id == selected_id else 'secondary'}'>{html_escape(u.name)}</button></a> "
        for u in users
    )
    heads = "".join(f"<div class='cal__head'>{day.label[:3]}</div>" for day in Weekday)
    blanks = "<div></div>" * grid.leading_blanks
    cells = "".join(_calendar_cell(info) for info in grid.days)
    inner = f"""
    <h1>Calendar</h1>
    <div class='card'>{picker}</div>
    {month_switcher('/calendar', year, month_number, f'user_id={html_escape(selected_id)}')}
    <div class='card'><div class='cal'>{heads}{blanks}{cells}</div></div>
    <div class='card'><strong>Moves this month:</strong> {grid.total_moves}</div>
    """
    return render_page(request, "Chorely · Calendar", inner, user=user, active="calendar")


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
@app.get("/stats", response_class=HTMLResponse)
def stats_page(request: Request, month: Optional[str] = Query(None)):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    year, month_number = parse_month(month, today_local())
    try:
        report = tracker.month_stats(year, month_number)
    except SQLAlchemyError as exc:
        return store_failure_page(request, exc, "stats", user)

    highlights = ""
    if report.champion is not None and report.outsider is not None:
        highlights = f"""
        <div class='card grid'>
          <div class='notice notice--success'>
            <div class='muted'>🏆 Champion of the month</div>
            <div class='metric'>{html_escape(report.champion.user.name)}</div>
            <div>{report.champion.completion_rate:.1f}%</div>
          </div>
          <div class='notice notice--error'>
            <div class='muted'>⚠️ Falling behind the most</div>
            <div class='metric'>{html_escape(report.outsider.user.name)}</div>
            <div>{report.outsider.completion_rate:.1f}%</div>
          </div>
        </div>
        """
    rows = []
    for entry in report.entries:
        marks = ""
        if report.champion is not None and entry.user.id == report.champion.user.id:
            marks += " 🏆"
        if report.outsider is not None and entry.user.id == report.outsider.user.id:
            marks += " ⚠️"
        rows.append(
            "<tr>"
            f"<td><strong>{html_escape(entry.user.name)}</strong>{marks}</td>"
            f"<td>{entry.tasks_required_total}</td>"
            f"<td>{entry.tasks_done_total}</td>"
            f"<td><span class='band--{entry.rate_band}'>{entry.completion_rate:.1f}%</span></td>"
            f"<td>{entry.moves_total}</td>"
            "</tr>"
        )
    body = "".join(rows) or "<tr><td colspan='5' class='muted'>No quotas for this month.</td></tr>"
    inner = f"""
    <h1>Statistics</h1>
    {month_switcher('/stats', year, month_number)}
    {highlights}
    <div class='card'>
      <table>
        <thead><tr><th>Member</th><th>Planned</th><th>Done</th><th>Completion</th><th>Moves</th></tr></thead>
        <tbody>{body}</tbody>
      </table>
    </div>
    """
    return render_page(request, "Chorely · Statistics", inner, user=user, active="stats")


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
_ADMIN_TABS = (("tasks", "Task templates"), ("quotas", "Weekly plan"), ("users", "Members"))


def _admin_password_form(error: str = "") -> str:
    error_html = f"<div class='notice notice--error'>{html_escape(error)}</div>" if error else ""
    return f"""
    <div class='card' style='max-width:400px;margin:2rem auto;'>
      <h1 style='text-align:center;'>Admin password</h1>
      <form method='post' action='/admin/login'>
        <label>Administrator password</label><br>
        <input name='password' type='password' required style='width:100%;'><br><br>
        {error_html}
        <button type='submit' style='width:100%;'>Continue</button>
      </form>
    </div>
    """


@app.get("/admin/login", response_class=HTMLResponse)
def admin_login_page(request: Request):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    if admin_authorized(request, user):
        return RedirectResponse("/admin", status_code=302)
    return render_page(request, "Chorely · Admin", _admin_password_form(), user=user, active="admin")


@app.post("/admin/login")
def admin_login(request: Request, password: str = Form(...)):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    if not tracker.check_password(password):
        logger.log("admin_login_rejected", level="warning", user=user.id if user else None)
        return render_page(
            request, "Chorely · Admin", _admin_password_form("Invalid password"), user=user, status_code=401
        )
    request.session[SESSION_ADMIN_KEY] = True
    return RedirectResponse("/admin", status_code=302)


def _user_checkboxes(users: List[User], name: str, checked: Optional[List[str]] = None) -> str:
    checked = checked or []
    return "".join(
        f"<label style='margin-right:0.75rem;'><input type='checkbox' name='{name}' value='{html_escape(u.id)}'"
        f"{' checked' if u.id in checked else ''}> {html_escape(u.name)}</label>"
        for u in users
    )


def _tasks_tab(users: List[User]) -> str:
    templates = tracker.list_templates()
    rows = []
    for template in templates:
        tid = html_escape(template.id)
        toggles = "".join(
            "<form method='post' action='/admin/templates/toggle_user' class='inline'>"
            f"<input type='hidden' name='template_id' value='{tid}'>"
            f"<input type='hidden' name='user_id' value='{html_escape(u.id)}'>"
            f"<button type='submit' class='{'' if template.is_assigned_to(u.id) else 'secondary'}'>"
            f"{html_escape(u.name)}</button></form> "
            for u in users
        )
        rows.append(
            f"""
            <tr>
              <td>
                <form method='post' action='/admin/templates/update'>
                  <input type='hidden' name='template_id' value='{tid}'>
                  <input name='title' value='{html_escape(template.title)}' required><br>
                  <textarea name='condition' rows='2' placeholder='Completion condition'>{html_escape(template.condition or '')}</textarea><br>
                  <button type='submit' class='secondary'>Save</button>
                </form>
              </td>
              <td>{toggles}</td>
              <td>
                <form method='post' action='/admin/templates/toggle_active' class='inline'>
                  <input type='hidden' name='template_id' value='{tid}'>
                  <button type='submit' class='{'ok' if template.active else 'secondary'}'>
                    {'Active' if template.active else 'Inactive'}</button>
                </form>
              </td>
            </tr>
            """
        )
    return f"""
    <div class='card'>
      <h2>New task</h2>
      <form method='post' action='/admin/templates/create'>
        <input name='title' placeholder='Title' required><br><br>
        <textarea name='condition' rows='2' placeholder='Completion condition (optional)'></textarea><br><br>
        <div>{_user_checkboxes(users, 'assigned_user_ids')}</div><br>
        <button type='submit'>Save</button>
      </form>
    </div>
    <div class='card'>
      <table>
        <thead><tr><th>Task</th><th>Assigned to</th><th>Status</th></tr></thead>
        <tbody>{''.join(rows) or "<tr><td colspan='3' class='muted'>No tasks yet.</td></tr>"}</tbody>
      </table>
    </div>
    """


def quota_field_name(user_id: str, weekday: int) -> str:
    return f"quota:{user_id}:{weekday}"


def _quotas_tab(users: List[User]) -> str:
    table = tracker.quota_table()
    heads = "".join(f"<th>{html_escape(u.name)}</th>" for u in users)
    rows = []
    for weekday in Weekday:
        cells = "".join(
            f"<td><input type='number' min='0' max='3' style='width:4rem;' "
            f"name='{html_escape(quota_field_name(u.id, int(weekday)))}' "
            f"value='{table.get((u.id, int(weekday)), 0)}'></td>"
            for u in users
        )
        rows.append(f"<tr><td><strong>{weekday.label}</strong></td>{cells}</tr>")
    return f"""
    <div class='card'>
      <form method='post' action='/admin/quotas/set'>
        <table>
          <thead><tr><th>Day</th>{heads}</tr></thead>
          <tbody>{''.join(rows)}</tbody>
        </table>
        <br><button type='submit'>Save plan</button>
      </form>
    </div>
    """


def _role_select(selected: UserRole) -> str:
    return (
        "<select name='role'>"
        + "".join(
            f"<option value='{role.value}'{' selected' if role is selected else ''}>{role.value.capitalize()}</option>"
            for role in UserRole
        )
        + "</select>"
    )


def _users_tab(users: List[User]) -> str:
    rows = []
    for u in users:
        uid = html_escape(u.id)
        rows.append(
            f"""
            <tr>
              <td><code>{uid}</code></td>
              <td>
                <form method='post' action='/admin/users/update' class='inline'>
                  <input type='hidden' name='user_id' value='{uid}'>
                  <input name='name' value='{html_escape(u.name)}' required>
                  <input name='login' value='{html_escape(u.login)}' required>
                  {_role_select(u.role)}
                  <button type='submit' class='secondary'>Save</button>
                </form>
              </td>
              <td>
                <form method='post' action='/admin/users/delete' class='inline'>
                  <input type='hidden' name='user_id' value='{uid}'>
                  <input name='password' type='password' placeholder='Password' required style='width:7rem;'>
                  <button type='submit' style='background:var(--bad);'>Delete</button>
                </form>
              </td>
            </tr>
            """
        )
    return f"""
    <div class='card'>
      <h2>New member</h2>
      <form method='post' action='/admin/users/create' class='inline'>
        <input name='user_id' placeholder='id' required>
        <input name='name' placeholder='Name' required>
        <input name='login' placeholder='Login' required>
        {_role_select(UserRole.CHILD)}
        <button type='submit'>Create</button>
      </form>
    </div>
    <div class='card'>
      <table>
        <thead><tr><th>Id</th><th>Details</th><th>Remove</th></tr></thead>
        <tbody>{''.join(rows)}</tbody>
      </table>
    </div>
    """


@app.get("/admin", response_class=HTMLResponse)
def admin_page(request: Request, tab: str = Query("tasks")):
    if (redirect := require_user(request)) is not None:
        return redirect
    user = current_user(request)
    assert user is not None
    if not admin_authorized(request, user):
        return render_page(request, "Chorely · Admin", _admin_password_form(), user=user, active="admin")
    if tab not in {key for key, _ in _ADMIN_TABS}:
        tab = "tasks"
    try:
        users = tracker.list_users()
        if tab == "quotas":
            content = _quotas_tab(users)
        elif tab == "users":
            content = _users_tab(users)
        else:
            content = _tasks_tab(users)
    except SQLAlchemyError as exc:
        return store_failure_page(request, exc, "admin", user)
    tabs = "".join(
        f"<a href='/admin?tab={key}' class='{'active' if key == tab else ''}'>{label}</a>" for key, label in _ADMIN_TABS
    )
    inner = f"<h1>Admin</h1><div class='tabs' style='border-bottom:2px solid #e5e7eb;margin-bottom:2rem;'>{tabs}</div>{content}"
    return render_page(request, "Chorely · Admin", inner, user=user, active="admin")


@app.post("/admin/templates/create")
async def admin_template_create(request: Request):
    if (redirect := require_admin(request)) is not None:
        return redirect
    form = await request.form()
    title = str(form.get("title") or "")
    condition = str(form.get("condition") or "")
    assigned = [str(value) for value in form.getlist("assigned_user_ids")]
    created = run_action(
        request,
        "create_template",
        lambda: tracker.create_template(title, condition=condition, assigned_user_ids=assigned),
    )
    if created is not None:
        set_notice(request, f"Created task {created.title}.", "success")
    return RedirectResponse("/admin?tab=tasks", status_code=302)


@app.post("/admin/templates/update")
def admin_template_update(
    request: Request,
    template_id: str = Form(...),
    title: str = Form(...),
    condition: str = Form(""),
):
    if (redirect := require_admin(request)) is not None:
        return redirect
    run_action(
        request,
        "update_template",
        lambda: tracker.update_template(template_id, title=title, condition=condition),
    )
    return RedirectResponse("/admin?tab=tasks", status_code=302)


@app.post("/admin/templates/toggle_active")
def admin_template_toggle_active(request: Request, template_id: str = Form(...)):
    if (redirect := require_admin(request)) is not None:
        return redirect
    run_action(request, "toggle_template_active", lambda: tracker.toggle_template_active(template_id))
    return RedirectResponse("/admin?tab=tasks", status_code=302)


@app.post("/admin/templates/toggle_user")
def admin_template_toggle_user(request: Request, template_id: str = Form(...), user_id: str = Form(...)):
    if (redirect := require_admin(request)) is not None:
        return redirect
    run_action(
        request,
        "toggle_template_assignment",
        lambda: tracker.toggle_template_assignment(template_id, user_id),
    )
    return RedirectResponse("/admin?tab=tasks", status_code=302)


def _parse_quota_fields(form) -> List[Tuple[str, int, int]]:
    updates: List[Tuple[str, int, int]] = []
    for key in form.keys():
        if not key.startswith("quota:"):
            continue
        user_id, _, weekday_raw = key[len("quota:"):].rpartition(":")
        try:
            weekday = int(weekday_raw)
        except ValueError:
            continue
        if not user_id:
            continue
        updates.append((user_id, weekday, clamp_tasks_required(form.get(key))))
    if form.get("user_id") and form.get("weekday") is not None:
        try:
            updates.append(
                (str(form.get("user_id")), int(str(form.get("weekday"))), clamp_tasks_required(form.get("tasks_required")))
            )
        except ValueError:
            pass
    return updates


@app.post("/admin/quotas/set")
async def admin_quotas_set(request: Request):
    if (redirect := require_admin(request)) is not None:
        return redirect
    form = await request.form()
    updates = _parse_quota_fields(form)
    current = run_action(request, "load_quotas", tracker.quota_table)
    if current is None:
        return RedirectResponse("/admin?tab=quotas", status_code=302)
    changed = [(uid, day, value) for uid, day, value in updates if current.get((uid, day), 0) != value]

    def _apply() -> int:
        for uid, day, value in changed:
            tracker.set_quota(uid, day, value)
        return len(changed)

    saved = run_action(request, "set_quotas", _apply)
    if saved is not None:
        set_notice(request, f"Saved {saved} change(s) to the weekly plan.", "success")
    return RedirectResponse("/admin?tab=quotas", status_code=302)


@app.post("/admin/users/create")
def admin_user_create(
    request: Request,
    user_id: str = Form(...),
    name: str = Form(...),
    login: str = Form(...),
    role: str = Form("child"),
):
    if (redirect := require_admin(request)) is not None:
        return redirect
    created = run_action(request, "create_user", lambda: tracker.create_user(user_id, name, login, role))
    if created is not None:
        set_notice(request, f"Created member {created.name}.", "success")
    return RedirectResponse("/admin?tab=users", status_code=302)


@app.post("/admin/users/update")
def admin_user_update(
    request: Request,
    user_id: str = Form(...),
    name: str = Form(...),
    login: str = Form(...),
    role: str = Form("child"),
):
    if (redirect := require_admin(request)) is not None:
        return redirect
    run_action(
        request,
        "update_user",
        lambda: tracker.update_user(user_id, name=name, login=login, role=role),
    )
    return RedirectResponse("/admin?tab=users", status_code=302)


@app.post("/admin/users/delete")
def admin_user_delete(request: Request, user_id: str = Form(...), password: str = Form(...)):
    if (redirect := require_admin(request)) is not None:
        return redirect
    if not tracker.check_password(password):
        set_notice(request, "Invalid password", "error")
        return RedirectResponse("/admin?tab=users", status_code=302)
    def _delete() -> str:
        tracker.delete_user(user_id)
        return user_id

    if run_action(request, "delete_user", _delete) is not None:
        set_notice(request, "Member removed together with their tasks and plan.", "success")
    return RedirectResponse("/admin?tab=users", status_code=302)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------
@app.get("/healthz", include_in_schema=False)
def healthz() -> JSONResponse:
    return JSONResponse({"status": "ok" if health.database_online else "degraded", **health.status()})


if SEED_DEFAULTS:
    ensure_default_data()


__all__ = [
    "admin_authorized",
    "app",
    "current_user",
    "ensure_default_data",
    "health",
    "logger",
    "now_local",
    "pop_notice",
    "quota_field_name",
    "run_action",
    "set_notice",
    "store",
    "today_local",
    "tracker",
]
