from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os

from .config import settings
from .database import engine, Base
from .errors import install_error_handlers
from .routers import alerts, auth, clients, quotes, users, work_orders

logger = logging.getLogger("workorder_portal")

BASE_REVISION = "0001_portal_schema"


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


setup_logging()

# Create tables (handles new tables but won't add columns to existing ones)
Base.metadata.create_all(bind=engine)


def _run_migrations():
    """Run pending Alembic migrations on startup.

    Databases created by Base.metadata.create_all() before Alembic ran have
    no alembic_version table; those are stamped at the base revision first.
    """
    try:
        from alembic.config import Config
        from alembic import command
        from sqlalchemy import inspect

        alembic_ini = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        if not os.path.exists(alembic_ini):
            logger.info("alembic.ini not found, skipping migrations")
            return

        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        insp = inspect(engine)
        tables = insp.get_table_names()
        if "alembic_version" not in tables and "quotes" in tables:
            logger.info(f"Stamping base migration {BASE_REVISION} (tables already exist)")
            command.stamp(alembic_cfg, BASE_REVISION)

        logger.info("Running pending Alembic migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception as e:
        # Never let migration errors prevent app startup
        logger.warning(f"Alembic migration warning: {e}")


app = FastAPI(
    title="Work Order Portal",
    description="Maintenance quote requests, quote lifecycle and work orders",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)

# API routes
app.include_router(auth.router, prefix="/api")
app.include_router(clients.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(quotes.router, prefix="/api")
app.include_router(work_orders.router, prefix="/api")
app.include_router(alerts.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok", "app": "workorder-portal"}


@app.on_event("startup")
def auto_migrate():
    """Run pending Alembic migrations on startup."""
    _run_migrations()


@app.on_event("startup")
def auto_seed():
    """Create the protected client, and the bootstrap admin when credentials are configured."""
    from .database import SessionLocal
    from .seed import seed_bootstrap_admin
    db = SessionLocal()
    try:
        seed_bootstrap_admin(db)
    finally:
        db.close()
