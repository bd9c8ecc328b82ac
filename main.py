##########
# Imports
##########
import logging
from contextlib import asynccontextmanager

import pymongo.errors
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogsphere import api_comments, api_posts, api_users, pages
from blogsphere.config import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, PORT, STATIC_DIR
from blogsphere.database import db, ensure_indexes
from blogsphere.logging_setup import setup_logging

logger = logging.getLogger(__name__)


##############
# Startup Hook
##############
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and initialize DB indexes on startup"""
    setup_logging(LOG_LEVEL, LOG_FILE)
    await ensure_indexes(db)
    logger.info("Blogsphere ready")
    yield


#####################
# FastAPI App Setup
#####################
app = FastAPI(title="Blogsphere", description="Social blogging platform", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount static files for CSS/JS
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


##################
# Error Handling
##################
@app.exception_handler(StarletteHTTPException)
async def page_error_handler(request: Request, exc: StarletteHTTPException):
    """Browsers get an HTML error page outside /api, everything else the JSON body"""
    wants_html = "text/html" in request.headers.get("accept", "")
    if wants_html and not request.url.path.startswith("/api"):
        return pages.templates.TemplateResponse(
            request,
            "error.html",
            {"title": "Error", "current_user": None, "status_code": exc.status_code, "detail": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )
    return await http_exception_handler(request, exc)


@app.exception_handler(pymongo.errors.DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: pymongo.errors.DuplicateKeyError):
    # Only users.email is unique among client-supplied values
    logger.warning("Duplicate key on %s: %s", request.url.path, exc.details)
    return JSONResponse(status_code=400, content={"detail": "Email already in use"})


@app.exception_handler(pymongo.errors.PyMongoError)
async def database_error_handler(request: Request, exc: pymongo.errors.PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


##########
# Routes
##########
@app.get("/api/health", include_in_schema=False)
async def health():
    return {"status": "ok"}


app.include_router(api_users.router, prefix="/api")
app.include_router(api_posts.router, prefix="/api")
app.include_router(api_comments.router, prefix="/api")
app.include_router(pages.router)


###############
# Entry Point
###############
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
