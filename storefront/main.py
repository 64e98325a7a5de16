from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from storefront.api import admin, pages
from storefront.core.config import settings
from storefront.core.logging import configure_logging
from storefront.version import VERSION

configure_logging(settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            logger.debug("%s %s", sorted(route.methods), route.path)
    yield

# Create instrumentator first
instrumentator = Instrumentator()

app = FastAPI(title='NEWagro Storefront', version=VERSION, lifespan=lifespan)

# Instrument the app BEFORE adding routes or middleware
instrumentator.instrument(app).expose(
    app,
    include_in_schema=False,
    endpoint="/metrics",
    should_gzip=True,
)

@app.get('/health')
def health(): return {'status':'ok'}

@app.get('/v1/_info')
def info(): return {'service':'storefront','version':VERSION}

@app.exception_handler(404)
async def not_found(request: Request, exc: StarletteHTTPException):
    # routes raise 404 with their own detail; only unmatched paths get the not-found page
    if exc.detail not in (None, 'Not Found'):
        return JSONResponse({'detail': exc.detail}, status_code=404)
    return JSONResponse(pages.not_found_payload(request.url.path, request.method), status_code=404)

app.include_router(admin.router, prefix='/admin/v1', tags=['admin'])
app.include_router(pages.router, tags=['pages'])
