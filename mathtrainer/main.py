"""Math Trainer Engine - FastAPI app entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mathtrainer.core.config import get_settings
from mathtrainer.db.base import Base
from mathtrainer.db.session import engine
from mathtrainer.routers import api

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # create tables (async); alembic owns schema changes
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database ready at %s", engine.url.render_as_string(hide_password=True))

    yield

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Trainer session progression, attempt recording and achievements",
    lifespan=lifespan,
)

app.include_router(api.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
