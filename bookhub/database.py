from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def make_engine(database_url: str):
    return create_engine(
        database_url,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {}
    )


def make_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db(request: Request):
    """Yield one session per request from the app's session factory."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
