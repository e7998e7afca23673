import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from txnlens.core.config import settings
from txnlens.core.db import connect
from txnlens.core.dependencies import build_services
from txnlens.api.routes import router
from txnlens.core.handlers import register_exception_handlers
from txnlens.core.middleware import TokenAuthMiddleware, DEFAULT_EXEMPT_PATHS

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DESCRIPTION = "Vietnamese transaction note classification with on-device learning"


@asynccontextmanager
async def lifespan(app: FastAPI):
    mongo_client = connect(settings)
    app.state.mongo_client = mongo_client
    app.state.db = mongo_client[settings.MONGO_DB]

    services = build_services(app.state.db, settings)
    app.state.services = services

    await services.classifier.initialize()
    if settings.ML_CLASSIFIER_ENABLED and settings.WARMUP_ON_STARTUP and not services.classifier.is_ready:
        logger.info("No usable persisted model, starting warm-up training")
        services.training.start_training()

    try:
        yield
    finally:
        services.training.cancel_training()
        await services.training.wait()
        services.debouncer.cancel_all()
        await services.debouncer.wait_idle(timeout=5)
        mongo_client.close()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    openapi_url="/openapi.json",
)


# Custom OpenAPI schema with Bearer token security
def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=DESCRIPTION,
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "Bearer": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Enter a valid JWT token",
        }
    }

    for path, path_item in openapi_schema["paths"].items():
        if path in DEFAULT_EXEMPT_PATHS:
            continue

        for operation in path_item.values():
            if isinstance(operation, dict) and "operationId" in operation:
                operation.setdefault("security", [{"Bearer": []}])

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# Register exception handlers
register_exception_handlers(app)

# Bearer JWT on everything but health and docs
app.add_middleware(TokenAuthMiddleware)

app.include_router(router)


@app.get(
    "/health",
    tags=["health"],
    summary="Health Check",
    description="Check if the API is running",
)
def health():
    """
    Health check endpoint to verify the API is running.

    Returns:
        dict: Status of the API
    """
    return {"status": "ok"}
