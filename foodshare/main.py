"""FoodShare – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from foodshare.config import get_settings
from foodshare.database import Base, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from foodshare.models import User, Post, Rating  # noqa: F401
from foodshare.errors import FoodShareError, InvalidCredentials
from foodshare.routers import auth, posts, ratings
from foodshare.services.otp_store import sweep_verification_stores

settings = get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger("foodshare")

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(posts.router)
app.include_router(ratings.router)

STATUS_BY_KIND = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "state": 409,
    "authorization": 403,
    "expired": 400,
    "dependency": 503,
}


@app.exception_handler(FoodShareError)
async def foodshare_error_handler(request: Request, exc: FoodShareError):
    status_code = 401 if isinstance(exc, InvalidCredentials) else STATUS_BY_KIND.get(exc.kind, 400)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "kind": exc.kind})


_scheduler = None


@app.on_event("startup")
def startup():
    global _scheduler
    if not (settings.mailgun_api_key and settings.mailgun_domain):
        logger.warning("Mailgun not configured - OTP and status emails will not be sent; set MAILGUN_API_KEY and MAILGUN_DOMAIN")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.warning("Database startup failed (tables skipped). Check DATABASE_URL and network. Error: %s", e)

    if settings.verification_sweep_enabled:
        from apscheduler.schedulers.background import BackgroundScheduler
        _scheduler = BackgroundScheduler()
        _scheduler.add_job(
            sweep_verification_stores,
            "interval",
            minutes=settings.verification_sweep_interval_minutes,
        )
        _scheduler.start()


@app.on_event("shutdown")
def shutdown():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
