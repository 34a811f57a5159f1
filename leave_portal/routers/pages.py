"""
Pages Router.

Server-rendered pages. Templates live in leave_portal/static/pages and use
{{VARIABLE}} placeholders; data is loaded by the page scripts from the
/api endpoints.
"""

import datetime as dt
import html
import logging
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, RedirectResponse

from leave_portal.core.dependencies import CurrentUserDep, SessionDep
from leave_portal.services.two_factor import LoginState
from leave_portal.utils.dates import format_date

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Pages"])

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "static" / "pages"


def _get_template_path(template_name: str) -> Path:
    return TEMPLATE_DIR / template_name


def _render_template(template_name: str, variables: dict[str, str]) -> str:
    """
    Render an HTML template with variable substitution.

    Args:
        template_name: Name of the template file (e.g., 'login.html')
        variables: Dictionary of {{VARIABLE}} -> value mappings; values are
            HTML-escaped.

    Returns:
        Rendered HTML string
    """
    template_path = _get_template_path(template_name)

    if not template_path.exists():
        raise FileNotFoundError(f"Template not found: {template_path}")

    content = template_path.read_text(encoding="utf-8")

    for key, value in variables.items():
        placeholder = "{{" + key + "}}"
        content = content.replace(placeholder, html.escape(str(value)))

    return content


@router.get("/", include_in_schema=False)
async def root(session: SessionDep) -> RedirectResponse:
    """Root endpoint - dashboard when signed in, login page otherwise."""
    target = "/dashboard" if session.authenticated else "/login"
    return RedirectResponse(url=target, status_code=303)


@router.get("/login", response_class=HTMLResponse, include_in_schema=False)
async def login_page(session: SessionDep):
    """
    Login page with the verification-code step.

    A pending 2FA login (pending cookie still valid) reopens the code
    prompt for the retained email.
    """
    if session.authenticated:
        return RedirectResponse(url="/dashboard", status_code=303)

    pending_email = session.pending_email or ""
    state = LoginState.TWO_FACTOR_PENDING if pending_email else LoginState.ANONYMOUS
    return HTMLResponse(content=_render_template("login.html", {
        "STATE": state.value,
        "PENDING_EMAIL": pending_email,
        "TWO_FACTOR_PENDING": LoginState.TWO_FACTOR_PENDING.value,
    }))


@router.get("/dashboard", response_class=HTMLResponse, include_in_schema=False)
async def dashboard_page(user: CurrentUserDep) -> HTMLResponse:
    return HTMLResponse(content=_render_template("dashboard.html", {
        "USER_ID": user.id,
        "USER_NAME": user.full_name or user.email,
        "USER_EMAIL": user.email,
        "USER_ROLE": user.role.value,
        "CAN_REVIEW": "true" if user.can_review else "false",
        "IS_ADMIN": "true" if user.is_admin else "false",
        "TWO_FACTOR_ENABLED": "true" if user.two_factor_enabled else "false",
        "TODAY": format_date(dt.date.today()),
    }))


@router.get("/logout", include_in_schema=False)
async def logout_page(session: SessionDep) -> RedirectResponse:
    session.logout()
    return RedirectResponse(url="/login", status_code=303)
