import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from errors import STATUS_NAMES, ApiError, Internal, ServiceUnavailable
from firebase_client import lifespan
from responses import error_response
from routes import admin_routes, auth_routes, driver_routes, ride_routes
from store import StoreUnavailable

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[lambda: settings.rate_limit],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)

app = FastAPI(
    title="Ride Booking API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan
)
app.state.limiter = limiter

app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error envelope
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    name = exc.name if isinstance(exc, ApiError) else STATUS_NAMES.get(exc.status_code, "Internal")
    return error_response(exc.status_code, str(exc.detail), name, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return error_response(400, f"Invalid input data. {'; '.join(problems)}", "ValidationFailed")


def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    # slowapi's middleware calls this synchronously
    return error_response(429, "Too many requests from this IP, please try again later.", "TooManyRequests")


app.add_exception_handler(RateLimitExceeded, rate_limit_handler)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    error = ServiceUnavailable()
    return error_response(error.status_code, error.detail, error.name)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = Internal("Something went wrong!")
    return error_response(error.status_code, error.detail, error.name)


@app.get("/")
@limiter.exempt
async def root():
    return {
        "status": "success",
        "message": "Welcome to the Ride Booking API",
        "version": app.version,
        "endpoints": {
            "health": "/health",
            "auth": "/api/v1/auth",
            "rides": "/api/v1/rides",
            "drivers": "/api/v1/drivers",
            "admin": "/api/v1/admin",
        },
    }


# Health check endpoint
@app.get("/health")
@limiter.exempt
async def health_check():
    return {"status": "ok"}

# Include routers
app.include_router(auth_routes.router, tags=["Authentication"])
app.include_router(ride_routes.router, tags=["Rides"])
app.include_router(driver_routes.router, tags=["Drivers"])
app.include_router(admin_routes.router, tags=["Admin"])

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting on port {settings.PORT} with {settings.STORE_BACKEND} store")
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
