from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse

from antiforgery import cfg
from antiforgery.frontend.web_app.deps import csrf
from antiforgery.frontend.web_app.utils import inject_common_context, templates

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)


@router.get("/", response_class=HTMLResponse)
async def form_page(request: Request):
    notes = request.session.get("notes", [])
    return templates.TemplateResponse(
        request,
        "form.html",
        {**inject_common_context(request), "notes": notes},
    )


@router.post("/notes", dependencies=[Depends(csrf.protect)])
async def add_note(request: Request, text: str = Form(...)):
    notes = list(request.session.get("notes", []))
    notes.append(text)
    request.session["notes"] = notes[-20:]
    logger.info("Note added", extra={"notes": len(notes)})
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/notes/clear", dependencies=[Depends(csrf.protect)])
async def clear_notes(request: Request):
    request.session.pop("notes", None)
    return RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/api/csrf-token")
async def csrf_token(request: Request):
    """For script clients that send the token back in the `csrf-token` header."""
    return {"header": cfg.CSRF_HEADER, "token": await csrf.current_token(request)}
