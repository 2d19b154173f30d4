import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from event_registry.core.config import settings
from event_registry.core.errors import install_error_handlers
from event_registry.core.logging import configure_logging
from event_registry.database.db import Base, engine
from event_registry.models import claims, events, materials  # noqa: F401  (register tables)
from event_registry.routes import claims as claim_routes
from event_registry.routes import events as event_routes
from event_registry.routes import materials as material_routes
from event_registry.routes import templates as template_routes

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)

# Include the routers
app.include_router(event_routes.router)
app.include_router(material_routes.router)
app.include_router(claim_routes.router)
app.include_router(template_routes.router)


@app.get("/health")
def health():
    return {"status": "ok"}
