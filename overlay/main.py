from fastapi import FastAPI
import logging
import os

from overlay.api.routes import router
from overlay.infra.redis_client import create_redis, redis_available
from overlay.session import has_session, init_session

app = FastAPI(title="overlay-lifecycle", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(
    level=os.environ.get("OVERLAY_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    # Tests install their own session before the app starts.
    if has_session():
        return

    r = create_redis()
    if not redis_available(r):
        logger.warning("[overlay] redis unreachable; session fields and events stay in memory")
        r = None
    init_session(r=r)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "overlay-lifecycle", "version": "0.1.0"}
