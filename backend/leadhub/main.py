from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from leadhub.core.config import settings
from leadhub.core.errors import LeadHubError
from leadhub.core.logging import setup_logging, get_logger
from leadhub.core.csrf import CSRFMiddleware
from leadhub.core.security_headers import SecurityHeadersMiddleware
from leadhub.core.rate_limit import limiter, rate_limit_exceeded_handler
from leadhub.routers import health, auth, me, subscriptions, webhooks_stripe
from leadhub.routers import leads, lead_categories, coins, coupons, notifications, support, dashboard
from leadhub.routers import admin_users, admin_subadmins, admin_subscriptions, admin_coins, admin_coupons
from leadhub.routers import admin_reconciliations, admin_logs, settings as settings_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(debug=settings.DEBUG)
    logger.info("Application started")
    yield
    logger.info("Application stopped")


app = FastAPI(
    title=settings.SITE_NAME,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(LeadHubError)
async def domain_error_handler(request: Request, exc: LeadHubError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": type(exc).__name__},
    )


# --- readable validation errors ---
_FIELD_NAMES = {
    "email": "Email address",
    "password": "Password",
    "new_password": "New password",
    "current_password": "Current password",
    "name": "Name",
    "code": "Code",
    "token": "Token",
    "session_id": "Session ID",
    "subscription_id": "Plan",
    "package_id": "Package",
    "amount": "Amount",
    "coin_amount": "Coin amount",
    "max_uses": "Maximum uses",
    "lead_coins": "LeadCoins",
    "price": "Price",
    "title": "Title",
    "description": "Description",
    "subject": "Subject",
    "message": "Message",
    "permissions": "Permissions",
}


def _translate_error(err: dict) -> str:
    t = err.get("type", "")
    ctx = err.get("ctx", {})
    loc = err.get("loc", [])
    field = str(loc[-1]) if loc else ""
    label = _FIELD_NAMES.get(field, field)

    if "email" in t or ("value" in t and "email" in err.get("msg", "").lower()):
        return f"{label} must be a valid email address"
    if t == "string_too_short":
        return f"{label} must be at least {ctx.get('min_length', '')} characters"
    if t == "string_too_long":
        return f"{label} must be at most {ctx.get('max_length', '')} characters"
    if t == "missing":
        return f"{label} is required"
    if t in ("int_parsing", "int_type"):
        return f"{label} must be a number"
    if t == "greater_than":
        return f"{label} must be greater than {ctx.get('gt', '')}"
    if t == "greater_than_equal":
        return f"{label} must be at least {ctx.get('ge', '')}"
    if t == "less_than_equal":
        return f"{label} must be at most {ctx.get('le', '')}"
    if t == "string_type":
        return f"{label} must be text"
    if t == "bool_parsing":
        return f"{label} must be true or false"
    if t == "value_error":
        return str(ctx.get("error", err.get("msg", f"{label}: invalid value")))
    return f"{label}: invalid value"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = [_translate_error(e) for e in exc.errors()]
    return JSONResponse(status_code=422, content={"detail": "; ".join(messages)})


# Middleware runs in reverse registration order
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(CSRFMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-CSRF-Token"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(me.router)
app.include_router(subscriptions.router)
app.include_router(webhooks_stripe.router)
app.include_router(leads.router)
app.include_router(lead_categories.router)
app.include_router(coins.router)
app.include_router(coupons.router)
app.include_router(notifications.router)
app.include_router(support.router)
app.include_router(dashboard.router)
app.include_router(admin_users.router)
app.include_router(admin_subadmins.router)
app.include_router(admin_subscriptions.router)
app.include_router(admin_coins.router)
app.include_router(admin_coupons.router)
app.include_router(admin_reconciliations.router)
app.include_router(admin_logs.router)
app.include_router(settings_router.router)
