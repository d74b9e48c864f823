from pathlib import Path
from typing import Optional

from fastapi import Request, status
from fastapi.templating import Jinja2Templates

from antiforgery import cfg

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def exposed_csrf_token(request: Request, value_name: str = cfg.CSRF_VALUE) -> Optional[str]:
    return getattr(request.state, value_name, None)

def inject_common_context(request: Request) -> dict:
    """Small helper to keep templates DRY."""
    return {
        "request": request,
        "csrf_param": cfg.CSRF_PARAM,
        "csrf_token": exposed_csrf_token(request),
    }

async def render_csrf_rejected(request: Request):
    """Rejection page for form posts; replaces the plain-text 403."""
    return templates.TemplateResponse(
        request,
        "errors/403.html",
        {"request": request},
        status_code=status.HTTP_403_FORBIDDEN,
    )
