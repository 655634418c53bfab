# Standard library imports
from contextlib import asynccontextmanager

# Third-party imports
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Local imports
from writeedge.api.v1.routes.router import router as api_router
from writeedge.core.config import settings
from writeedge.core.exception_handlers import register_exception_handlers
from writeedge.core.genai_client import get_gemini_model
from writeedge.core.logging_config import get_logger
from writeedge.db.deps import AsyncSessionLocal, Base, engine
from writeedge.services.evaluation.worker import EvaluationWorker

# Initialize centralized logger
logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown operations."""
    if settings.AUTO_CREATE_TABLES:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    worker = None
    if settings.EVALUATION_WORKER_ENABLED:
        worker = EvaluationWorker(AsyncSessionLocal, get_gemini_model, settings)
        await worker.start()
    app.state.evaluation_worker = worker

    yield

    # Shutdown: let the current sweep finish, then release the pool
    if worker is not None:
        await worker.stop()
    await engine.dispose()


# Initialize FastAPI
app = FastAPI(
    title="WriteEdge API",
    description="Test submission and AI writing evaluation API for WriteEdge",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Routes keep the paths the dashboards already call (/api/submit-test, ...)
app.include_router(api_router, prefix="/api")

register_exception_handlers(app)

# Add CORS middleware
logger.info(f"Configuring CORS middleware with origins: {settings.ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)
logger.info("CORS middleware configured successfully")


# Run the app
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
