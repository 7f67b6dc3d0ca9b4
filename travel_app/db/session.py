import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./travel.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# SQLite needs check_same_thread=False because FastAPI runs sync routes in a threadpool
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    echo=SQL_ECHO,
    pool_pre_ping=True,
    connect_args=connect_args,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def init_db():
    """Create all tables (local development; production uses alembic)."""
    import travel_app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
