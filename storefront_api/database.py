"""
Database Configuration and Session Management

Two engines share the same database:

- ``engine`` backs the ORM session factory used by every request handler.
- ``direct_engine`` is a small secondary pool for raw SQL against the
  directory materialized views. It is kept separate so slow view queries
  cannot starve the main pool.
"""
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from storefront_api.config import get_settings
import logging

logger = logging.getLogger(__name__)

settings = get_settings()

# SQLite (tests, local experiments) needs cross-thread access because the
# ASGI server runs handlers on a different thread than the one that opened
# the connection.
_connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    _connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    poolclass=QueuePool,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    pool_pre_ping=True,
    echo=settings.DEBUG,
    connect_args=_connect_args,
)

direct_engine = create_engine(
    settings.DATABASE_URL,
    poolclass=QueuePool,
    pool_size=settings.DIRECT_POOL_SIZE,
    max_overflow=0,
    pool_timeout=settings.DIRECT_POOL_TIMEOUT,
    pool_recycle=settings.DIRECT_POOL_RECYCLE,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

# expire_on_commit=False so handlers can serialize objects after commit
# without another round trip.
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False
)

Base = declarative_base()


@event.listens_for(engine, "connect")
@event.listens_for(direct_engine, "connect")
def set_connection_defaults(dbapi_connection, connection_record):
    """Set connection-level configuration on new connections."""
    cursor = dbapi_connection.cursor()
    if settings.DATABASE_URL.startswith("postgresql"):
        cursor.execute("SET TIME ZONE 'UTC'")
    cursor.close()
    logger.debug("New database connection established")


def get_db() -> Session:
    """
    Dependency function that provides a database session.

    The session is closed after the request completes.
    Tenant isolation is enforced by the middleware and the handlers,
    not here.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Create all tables.

    Development and tests only. Production schema changes go through
    migrations.
    """
    # Import models so they register on Base.metadata
    import storefront_api.models  # noqa: F401

    logger.warning("init_db() called - use migrations in production!")
    Base.metadata.create_all(bind=engine)
    create_directory_views()


# One row per listing category, with the rating rollup folded in. Only
# PostgreSQL has materialized views; elsewhere related-store lookups use
# the table scan.
DIRECTORY_VIEW_DDL = (
    """
    CREATE MATERIALIZED VIEW IF NOT EXISTS directory_category_listings AS
    SELECT
        l.id AS listing_id,
        l.tenant_id,
        l.slug,
        l.business_name,
        l.city,
        l.state,
        l.logo_url,
        l.primary_category,
        l.product_count,
        l.is_featured,
        l.is_published,
        l.subscription_tier,
        t.location_status,
        c.category_slug,
        COALESCE(c.is_primary, false) AS is_primary,
        COALESCE(s.rating_avg, l.rating_avg, 0) AS rating_avg,
        COALESCE(s.rating_count, l.rating_count, 0) AS rating_count
    FROM directory_listings_list l
    JOIN tenants t ON t.id = l.tenant_id
    LEFT JOIN directory_listing_categories c ON c.listing_id = l.id
    LEFT JOIN store_rating_summary s ON s.tenant_id = l.tenant_id
    WHERE l.is_published = true
    """,
    "CREATE INDEX IF NOT EXISTS idx_dcl_slug ON directory_category_listings (slug)",
    "CREATE INDEX IF NOT EXISTS idx_dcl_category_slug ON directory_category_listings (category_slug)",
    "CREATE INDEX IF NOT EXISTS idx_dcl_rating_avg ON directory_category_listings (rating_avg DESC NULLS LAST)",
)


def _supports_materialized_views() -> bool:
    return direct_engine.dialect.name == "postgresql"


def create_directory_views():
    """Create the directory materialized view and its indexes."""
    if not _supports_materialized_views():
        logger.debug("Skipping directory views: database has no materialized views")
        return
    with direct_engine.begin() as conn:
        for statement in DIRECTORY_VIEW_DDL:
            conn.execute(text(statement))


def refresh_directory_views():
    """
    Rebuild the directory view after listing or rating changes.

    A failed refresh only leaves the view stale; related-store lookups
    fall back to the listings table when the view cannot be read.
    """
    if not _supports_materialized_views():
        return
    try:
        with direct_engine.begin() as conn:
            conn.execute(text("REFRESH MATERIALIZED VIEW directory_category_listings"))
    except SQLAlchemyError as e:
        logger.warning(f"Directory view refresh failed: {e}")
