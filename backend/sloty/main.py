import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.exceptions import RedisError

from .config import settings
from .database import init_db
from .redis_client import redis_client
from .routers import appointments, location_closures, provider_exceptions, slots, working_hours

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    logger.info("Sloty API started")
    yield


app = FastAPI(title="Sloty Availability API", lifespan=lifespan)

app.include_router(slots.router)
app.include_router(appointments.router)
app.include_router(working_hours.router)
app.include_router(location_closures.router)
app.include_router(provider_exceptions.router)


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except RedisError:
        redis_ok = False
    return {"redis": redis_ok}
