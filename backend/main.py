import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from core.log_config import setup_logging   # not core.logging: would shadow stdlib
from core.config import meta, settings
from core.errors import DirectoryNotFound
from api.routers import browser, mibs
from services.mib_service import MibTreeService

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the MIB tree before accepting requests.

    A missing MIB directory aborts startup. Any other load failure is kept
    by the service and reported on every /tree request.
    """
    mib_service = MibTreeService()
    app.state.mib_service = mib_service
    try:
        mib_service.load_and_build()
    except DirectoryNotFound as e:
        logger.critical(f"{e}. Please create it and place MIB files inside.")
        raise
    except Exception as e:
        logger.error(f"Failed to initialize MIB tree: {e}")
    yield


app = FastAPI(title=meta.NAME, version=meta.VERSION, lifespan=lifespan)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
# Explicit origins: browsers reject wildcard "*" combined with credentials.
# Set ALLOWED_ORIGINS as a comma-separated list.
# Default: http://localhost:5173 (frontend dev server)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
    max_age=300,
)


@app.get("/", response_class=PlainTextResponse)
def index():
    return f"{meta.NAME} backend is running. Access /tree or /api/mib_tree to get MIB data."


@app.get("/api/meta")
def get_app_metadata():
    return {
        "name": meta.NAME,
        "version": meta.VERSION,
        "author": meta.AUTHOR,
        "description": meta.DESCRIPTION
    }


@app.get("/api/health")
def health_check():
    return {
        "status": "healthy",
        "service": meta.NAME,
        "version": meta.VERSION
    }


# ---------------------------------------------------------------------------
# Routers
# Tree endpoints:   /tree, /node (aliases /api/mib_tree, /api/mib_node_details)
# Status endpoints: /api/mibs/*
# ---------------------------------------------------------------------------
app.include_router(browser.router)
app.include_router(mibs.router, prefix="/api")


def run():
    import uvicorn
    logger.info(f"Starting server on {settings.HOST}:{settings.PORT}...")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()
