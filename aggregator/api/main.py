"""FastAPI application for the route aggregator.

Note: Rate limiting and caching are not implemented at the application level.
They belong to the reverse proxy in front of this service.
"""

import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from aggregator import __version__
from aggregator.api.endpoints import router
from aggregator.logging_config import configure_logging

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("AGGREGATOR_HOST", "0.0.0.0")
PORT = int(os.environ.get("AGGREGATOR_PORT", "8000"))
DEBUG = os.environ.get("AGGREGATOR_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (1 MB)
MAX_REQUEST_SIZE = 1024 * 1024

app = FastAPI(
    title="Swap Route Aggregator",
    description="Discovers, validates and ranks swap routes across on-chain venues",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


app.include_router(router)


@app.get("/health")
async def health() -> dict[str, object]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def run() -> None:
    """Run the API server.

    Configuration via environment variables:
    - AGGREGATOR_HOST: Host to bind to (default: 0.0.0.0)
    - AGGREGATOR_PORT: Port to bind to (default: 8000)
    - AGGREGATOR_DEBUG: Enable debug logging and reload mode (default: false)
    """
    configure_logging(verbose=DEBUG)
    uvicorn.run(
        "aggregator.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
