from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from notify_scheduler.config import settings
from notify_scheduler.db import Base, engine
from notify_scheduler.metrics import flush_metrics
from notify_scheduler.route_logging import EndpointNameRoute
from notify_scheduler.routers import class_session, notifications
from notify_scheduler.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    if settings.enable_scheduler:
        start_scheduler()
    yield
    stop_scheduler()
    flush_metrics()


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logger.warning('slow_request method=%s path=%s duration_ms=%.2f', request.method, request.url.path, duration_ms)
    return response


app.include_router(notifications.router)
app.include_router(class_session.router)


@app.get('/health')
def health():
    return {'status': 'ok', 'app': settings.app_name}
