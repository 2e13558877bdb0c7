import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import router
from app.core.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handles system startup and shutdown events.

    Initializes logging. The report database is opened per request and
    never written to, so there is nothing to create here.
    """
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler()] # This sends it to the Terminal
    )
    logging.getLogger(__name__).info(f"Serving reports from {settings.DATABASE_URL}")

    yield

# Define the FastAPI app with metadata for Swagger UI
app = FastAPI(
    title="Chinook Business Report API",
    description="Read-only analytical report over the Chinook music store database",
    version="0.1.0",
    lifespan=lifespan
)

# Include our routes
app.include_router(router)

@app.get("/")
def read_root() -> dict[str, str]:
    """Landing endpoint for the API.

    Returns:
        Dict[str, str]: A welcome message.
    """
    return {"message": "Welcome to the Chinook Business Report API"}
