from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from mosque_edu.config import settings
from mosque_edu.db import Base, engine
from mosque_edu.metrics import flush_cache_metrics
from mosque_edu.route_logging import EndpointNameRoute
from mosque_edu.routers import attendance, enrollments, evaluations, payments

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield
    flush_cache_metrics()


app = FastAPI(title=settings.app_name, version='0.1.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.metrics_slow_ms:
        logging.getLogger('mosque_edu.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
        )
    return response


app.include_router(enrollments.router)
app.include_router(payments.router)
app.include_router(attendance.router)
app.include_router(evaluations.router)


@app.get('/health')
def health():
    return {'status': 'ok', 'app': settings.app_name, 'env': settings.app_env}
