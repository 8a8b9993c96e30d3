import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bookhub import models  # noqa: F401  registers the tables on Base.metadata
from bookhub.config import Settings
from bookhub.database import Base, get_db, make_engine, make_session_factory
from bookhub.errors import register_error_handlers
from bookhub.mailer import Mailer
from bookhub.routes import books, payments, users
from bookhub.stripe_service import StripeGateway

logger = logging.getLogger(__name__)


def create_app(settings: Settings = None, mailer: Mailer = None, gateway: StripeGateway = None) -> FastAPI:
    settings = settings or Settings.from_env()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(title="Bookhub Store API")

    app.state.settings = settings
    engine = make_engine(settings.database_url)
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.mailer = mailer or Mailer(settings)
    app.state.gateway = gateway or StripeGateway(settings)

    Base.metadata.create_all(bind=engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    register_error_handlers(app)

    for prefix in ("", "/api"):
        app.include_router(books.router, prefix=f"{prefix}/books")
        app.include_router(users.router, prefix=f"{prefix}/users")
        app.include_router(payments.router, prefix=f"{prefix}/payments")

    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        try:
            result = db.execute(text("SELECT 1")).scalar()
        except SQLAlchemyError:
            logger.exception("Health check failed")
            return JSONResponse(status_code=500, content={"status": "error", "message": "Database unavailable"})
        return {"status": "ok", "dbTest": result}

    logger.info("Bookhub API ready")
    return app


def run():
    import uvicorn

    uvicorn.run("bookhub.main:create_app", factory=True, host="0.0.0.0", port=5000)
