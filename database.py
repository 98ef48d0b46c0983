# database.py - Database configuration with PostgreSQL and SQLite support
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError
from pathlib import Path

from settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()
DATABASE_URL = settings.DATABASE_URL

# Create data directory for SQLite if needed
if DATABASE_URL == "sqlite:///./data/pos_sync.db":
    DATA_DIR = Path(__file__).resolve().parent / "data"
    DATA_DIR.mkdir(exist_ok=True)
    DATABASE_URL = f"sqlite:///{DATA_DIR}/pos_sync.db"

# Database engine configuration
connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False  # Needed for SQLite with FastAPI

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,  # Handle stale connections for PostgreSQL
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Reference categories: (name, slug, is_restricted, restriction_reason)
DEFAULT_CATEGORIES = [
    ("Other", "other", False, None),
    ("Alcohol", "alcohol", True, "Alcoholic beverages cannot be purchased with barter credit"),
    ("Tobacco", "tobacco", True, "Tobacco and nicotine products cannot be purchased with barter credit"),
    ("Lottery", "lottery", True, "Lottery and gaming products cannot be purchased with barter credit"),
    ("Gift Cards", "gift-cards", True, "Gift cards and stored value cannot be purchased with barter credit"),
    ("Pharmacy", "pharmacy", True, "Prescription and regulated medication cannot be purchased with barter credit"),
    ("Firearms", "firearms", True, "Firearms and ammunition cannot be purchased with barter credit"),
    ("Food", "food", False, None),
    ("Beverages", "beverages", False, None),
    ("Clothing", "clothing", False, None),
    ("Electronics", "electronics", False, None),
    ("Home & Garden", "home-garden", False, None),
    ("Health & Beauty", "health-beauty", False, None),
    ("Services", "services", False, None),
]


def get_db():
    """Dependency for getting database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def seed_categories(db: Session) -> int:
    """Insert any missing reference categories. Returns the number added."""
    from db_models import ProductCategory

    existing = {slug for (slug,) in db.query(ProductCategory.slug).all()}
    added = 0
    for name, slug, is_restricted, reason in DEFAULT_CATEGORIES:
        if slug in existing:
            continue
        db.add(ProductCategory(
            name=name,
            slug=slug,
            is_restricted=is_restricted,
            restriction_reason=reason
        ))
        added += 1

    if added:
        safe_commit(db)
        logger.info(f"Seeded {added} product categories")
    return added


def init_db():
    """Initialize database tables and reference data"""
    from db_models import User, POSIntegration, ProductCategory, Product, SyncProgress  # noqa: F401
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_categories(db)
    finally:
        db.close()


def safe_commit(db: Session) -> bool:
    """
    Safely commit a database transaction with rollback on failure.

    Args:
        db: SQLAlchemy session

    Returns:
        True if commit succeeded

    Raises:
        Re-raises the exception after rollback
    """
    try:
        db.commit()
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database commit failed, rolling back: {e}")
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Unexpected error during commit, rolling back: {e}")
        db.rollback()
        raise
