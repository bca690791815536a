"""
MysticRead AI — Database Layer
SQLAlchemy engine + session management, analysis records and their CRUD helpers.
"""

import os
import uuid
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import create_engine, Column, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///./dev.db"


def _build_db_url(url: Optional[str] = None) -> str:
    """SQLite for development, PostgreSQL (psycopg2) for production."""
    raw_url = url or os.getenv("DATABASE_URL", "") or DEFAULT_DB_URL
    if raw_url.startswith("postgres://"):
        raw_url = "postgresql://" + raw_url[len("postgres://"):]
    if raw_url.startswith("postgresql://"):
        raw_url = "postgresql+psycopg2://" + raw_url[len("postgresql://"):]
    return raw_url


# ── Engine ────────────────────────────────────────────────────────────────────
engine = None
SessionLocal = None


def init_db(url: Optional[str] = None):
    """Initialise the database engine and create tables."""
    global engine, SessionLocal
    db_url = _build_db_url(url)
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(
            db_url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
        )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    import user_db  # noqa: F401  registers the user/chat/payment tables
    Base.metadata.create_all(bind=engine)
    logger.info(f"✅ Database connected ({engine.dialect.name}) and tables created.")
    return engine


def get_db():
    """FastAPI dependency — yields a DB session."""
    if SessionLocal is None:
        init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass


class AnalysisRecord(Base):
    """One validated reading of any kind. Append-only."""
    __tablename__ = "analyses"

    id              = Column(String(36), primary_key=True, default=_uuid)
    user_id         = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    type            = Column(String(20), nullable=False, index=True)   # palm | astrology | vastu | numerology | tarot
    image_url       = Column(Text, nullable=True)
    input_data      = Column(JSON, nullable=True)
    analysis_result = Column(JSON, nullable=False)
    created_at      = Column(DateTime(timezone=True), default=_now)


class PalmAnalysis(Base):
    """Legacy palm-only table, read for records created before `analyses` existed."""
    __tablename__ = "palm_analyses"

    id              = Column(String(36), primary_key=True, default=_uuid)
    image_url       = Column(Text, nullable=False)
    analysis_result = Column(JSON, nullable=False)
    created_at      = Column(DateTime(timezone=True), default=_now)


# ── CRUD helpers ──────────────────────────────────────────────────────────────
def create_analysis(
    db: Session,
    kind: str,
    input_data: Optional[dict],
    result: dict,
    user_id: Optional[str] = None,
    image_url: Optional[str] = None,
) -> AnalysisRecord:
    """Persist a validated reading. The id is assigned here, never by the caller."""
    record = AnalysisRecord(
        type=kind,
        user_id=user_id,
        image_url=image_url,
        input_data=input_data,
        analysis_result=result,
    )
    db.add(record)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    logger.info(f"Saved {kind} analysis id={record.id} user={user_id}")
    return record


def get_analysis(db: Session, analysis_id: str) -> Optional[AnalysisRecord]:
    return db.get(AnalysisRecord, analysis_id)


def get_palm_analysis(db: Session, analysis_id: str):
    """Palm reading by id: the generic table first, then the legacy one."""
    record = db.get(AnalysisRecord, analysis_id)
    if record is not None and record.type == "palm":
        return record
    return db.get(PalmAnalysis, analysis_id)


def list_user_analyses(db: Session, user_id: str, limit: int = 20) -> list[AnalysisRecord]:
    """Fetch a user's most recent analyses ordered by creation time."""
    return (
        db.query(AnalysisRecord)
        .filter(AnalysisRecord.user_id == user_id)
        .order_by(AnalysisRecord.created_at.desc())
        .limit(limit)
        .all()
    )


def serialize_analysis(record) -> dict:
    """API shape for both `AnalysisRecord` and legacy `PalmAnalysis` rows."""
    return {
        "id":         record.id,
        "type":       getattr(record, "type", "palm"),
        "userId":     getattr(record, "user_id", None),
        "inputData":  getattr(record, "input_data", None),
        "imageUrl":   record.image_url,
        "result":     record.analysis_result,
        "createdAt":  record.created_at.isoformat() if record.created_at else None,
    }
