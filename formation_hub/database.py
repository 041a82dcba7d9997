"""
Relational storage for Formation Hub.
Stores formations, votes, cached user profiles and artifact roster levels.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    create_engine, Column, Integer, String, DateTime, ForeignKey,
    UniqueConstraint, event, text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from formation_hub import config

Base = declarative_base()

engine: Optional[Engine] = None
SessionLocal = sessionmaker(autoflush=False)


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def configure_engine(url: str) -> Engine:
    """(Re)bind the module-level engine and session factory to ``url``."""
    global engine
    kwargs: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(url, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragma)
    SessionLocal.configure(bind=engine)
    return engine


configure_engine(config.DATABASE_URL)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class Formation(Base):
    """A saved team composition."""
    __tablename__ = "formations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    formation = Column(String(255), nullable=False)   # hero ids, "12,7,3"
    artifact = Column(String(64), nullable=False)
    layout = Column(Integer, nullable=False, default=0)
    tags = Column(String(512), nullable=False, default="")  # "boss,dream realm"
    formation_share_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    votes = relationship(
        "Vote",
        back_populates="formation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def hero_ids(self) -> List[str]:
        return [h for h in (self.formation or "").split(",") if h]

    @property
    def tag_list(self) -> List[str]:
        return [t for t in (self.tags or "").split(",") if t]


class Vote(Base):
    """One upvote of a formation by one user."""
    __tablename__ = "votes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    formation_id = Column(
        Integer,
        ForeignKey("formations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String(64), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    formation = relationship("Formation", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("formation_id", "user_id", name="uq_vote_formation_user"),
    )


class UserProfile(Base):
    """Display name and avatar cached from the identity provider."""
    __tablename__ = "user_profiles"

    user_id = Column(String(64), primary_key=True)
    username = Column(String(64), nullable=False)
    avatar_url = Column(String(512), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UserArtifact(Base):
    """A user's level for one catalog artifact."""
    __tablename__ = "user_artifacts"

    user_id = Column(String(64), primary_key=True)
    artifact_id = Column(String(64), primary_key=True)
    level = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ---------------------------------------------------------------------------
# Database initialization
# ---------------------------------------------------------------------------

def init_db():
    """Create all tables if they don't exist."""
    Base.metadata.create_all(bind=engine)


def get_db() -> Session:
    """Get a database session. Caller must close it."""
    return SessionLocal()


def check_connection(db: Session) -> None:
    """Raise if the database cannot answer a trivial query."""
    db.execute(text("SELECT 1"))
