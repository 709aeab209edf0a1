import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import activity, auth, bulletin, members, milestones, officers, reports
from .api.dependencies import session_scope
from .config import Base, engine, settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.security import SecurityHeadersMiddleware, log_security_warnings
from .services.members import refresh_all_delinquency

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=f"{settings.association_name} - Membership")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
register_exception_handlers(app)


@app.on_event("startup")
def startup() -> None:
    log_security_warnings(settings.jwt_secret, settings.database_url, settings.cors_origins)
    # In dev we make sure tables exist. Alembic migrations should be used for real schema evolution.
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        changed = refresh_all_delinquency(session)
    logger.info("Startup complete; %d member record(s) refreshed", changed)


@app.get("/health", tags=["system"])
def health() -> dict:
    return {"status": "ok"}


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(members.router, prefix="/members", tags=["members"])
app.include_router(reports.router, prefix="/reports", tags=["reports"])
app.include_router(officers.router, prefix="/officers", tags=["officers"])
app.include_router(milestones.router, prefix="/milestones", tags=["milestones"])
app.include_router(bulletin.router, prefix="/bulletin", tags=["bulletin"])
app.include_router(activity.router, prefix="/activity", tags=["activity"])
