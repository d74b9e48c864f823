import secrets
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import HTTPException
from starlette.middleware.sessions import SessionMiddleware

from antiforgery.cfg import PRODUCTION, SESSION_SECRET
from antiforgery.frontend.web_app.deps import csrf
from antiforgery.frontend.web_app.routers.form_router import router as form_router
from antiforgery.frontend.web_app.utils import templates

logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------------
# app setup
# ----------------------------------------------------------------------------
app = FastAPI()

# issue + expose on every request; routes opt into validation with Depends(csrf.protect)
csrf.init_app(app)

# Session secret (must be strong & persistent in production!)
# Added after the CSRF middleware so that it wraps it.
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET or secrets.token_hex(32),
    session_cookie="session",
    same_site="strict" if PRODUCTION else "lax",
    https_only=PRODUCTION,   # only over HTTPS if prod
    max_age=60 * 60 * 1,     # 1h session
)

app.include_router(form_router)


# ---- Handle 404 Not Found ----
@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return templates.TemplateResponse(
        request,
        "errors/404.html",
        {"request": request},
        status_code=status.HTTP_404_NOT_FOUND,
    )
