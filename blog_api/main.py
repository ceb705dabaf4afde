import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from blog_api.cache import cache
from blog_api.config import settings
from blog_api.errors import BlogAPIError
from blog_api.middleware import TimingMiddleware
from blog_api.routers import auth, metrics, posts, suggestions, users

# Module loggers under "blog_api" follow LOG_LEVEL instead of the root default.
logging.getLogger("blog_api").setLevel(settings.LOG_LEVEL.upper())

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; the API works without Redis
    await cache.connect()
    yield
    # Shutdown
    await cache.disconnect()

app = FastAPI(
    title="Blog API",
    description="Blog and community backend: posts, threaded comments and a suggestion box with upvotes",
    version="1.0.0",
    lifespan=lifespan,
)

@app.exception_handler(BlogAPIError)
async def blog_api_error_handler(request: Request, exc: BlogAPIError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if settings.DEBUG:
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)

# Middleware
app.add_middleware(TimingMiddleware)
origins = settings.cors_origin_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    # Credentials are never combined with a wildcard origin.
    allow_credentials=origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth.router)
app.include_router(posts.router)
app.include_router(users.router)
app.include_router(suggestions.router)
app.include_router(metrics.router)

@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
