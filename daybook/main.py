from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from daybook.db.base import get_db
from daybook.core.config import settings
from daybook.core.logging import configure_logging
from daybook.routers import memories as memories_router
from daybook.routers import reflections as reflections_router
from daybook.services.narrator import Narrator, get_narrator
from daybook.core.errors import (
    DaybookException,
    daybook_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging()

app = FastAPI(
    title="Daybook API",
    description=(
        "**One memory a day, reflections over time.**\n\n"
        "Stores one journal entry per day, tracks when weekly / monthly / yearly "
        "reflections become available, and generates them through a narrator model.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(DaybookException, daybook_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(memories_router.router)
app.include_router(reflections_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}


@app.get("/health/narrator", tags=["health"], summary="Narrator connectivity check")
def narrator_health(narrator: Narrator = Depends(get_narrator)):
    """Calls the narrator's model listing with the configured key. Never generates text."""
    check = getattr(narrator, "check_connection", None)
    connected = bool(check()) if callable(check) else True
    return {"status": "ok" if connected else "unreachable", "narrator": connected}
