"""Main FastAPI application module.

This module initializes the FastAPI application and registers all route handlers.
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from class2class import __version__
from class2class.config import API_HOST, API_PORT, CORS_ALLOWED_ORIGINS
from class2class.core.exceptions import (
    Class2ClassError,
    DuplicateRecordError,
    InvitationStateError,
)
from class2class.core.logging_config import setup_logging
from class2class.api.routes import invitations, partners, programs, session

# Setup logging
setup_logging()

# Initialize FastAPI application
app = FastAPI(
    title="Class2Class Program API",
    description="Partner dashboards, program summaries and invitations.",
    version=__version__,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register route handlers
app.include_router(programs.router)
app.include_router(partners.router)
app.include_router(invitations.router)
app.include_router(session.router)


@app.exception_handler(Class2ClassError)
def store_error_handler(request: Request, exc: Class2ClassError) -> JSONResponse:
    """Turn store errors the routes did not map into 409 or 400 responses."""
    conflict = isinstance(exc, (DuplicateRecordError, InvitationStateError))
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT if conflict else status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """API root, returns API information and documentation links.

    Returns:
        Dictionary with API information and documentation links.
    """
    return {
        "name": "Class2Class Program API",
        "version": __version__,
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    """Health check endpoint.

    Returns:
        Dictionary with status "ok".
    """
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    server_url = f"http://{API_HOST}:{API_PORT}"
    print(f"Starting Class2Class API at {server_url}")
    print(f"API docs: {server_url}/docs")
    uvicorn.run("class2class.api.app:app", host=API_HOST, port=API_PORT, reload=True)
