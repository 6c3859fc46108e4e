import uvicorn as uvicorn
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi_limiter import FastAPILimiter
import logging

from src.config.settings import settings
from src.config.database import startDB
from src.config.redis_client import get_redis
from src.dependencies.rate_limit_dependencies import rate_limit
from src.schedulers.payment_reconcile_scheduler import payment_reconcile_scheduler
from src.routes import userRoute, bookingRoute, paymentRoute, calendarRoute, reviewRoute, providerRoute, \
    stripeWebhookHandler
from src.adminUtils.adminRoutes import admin_provider_routes, admin_booking_routes, admin_report_routes

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def ip_whitelist_middleware(request: Request, call_next):
    try:
        # Skip IP check in production
        if settings.ENVIRONMENT.lower() == "production":
            return await call_next(request)

        allowed_ips = settings.allowed_ips

        # Skip if no IPs are configured (safety fallback)
        if not allowed_ips:
            logger.debug("No ALLOWED_IPS set - allowing all requests")
            return await call_next(request)

        # Get client IP (with proxy support)
        client_ip = request.client.host
        if x_forwarded_for := request.headers.get("X-Forwarded-For"):
            client_ip = x_forwarded_for.split(",")[0].strip()

        if client_ip in allowed_ips:
            logger.debug(f"✅ Allowed {client_ip} → {request.url}")
            return await call_next(request)
        else:
            logger.warning(f"⛔ Blocked {client_ip} (not in {allowed_ips})")
            return JSONResponse(
                status_code=403,
                content={
                    "detail": "Access forbidden",
                    "your_ip": client_ip,
                    "allowed_ips": allowed_ips
                }
            )

    except Exception as e:
        logger.error(f"IP check error: {str(e)}", exc_info=True)
        return await call_next(request)  # Safety fallthrough


# Initialize FastAPI app with lifespan context
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize database connection and models (startup logic)
    await startDB()

    # Initialize rate limiter
    if settings.rate_limiting_enabled:
        await FastAPILimiter.init(get_redis())

    # Webhook-loss safety net (only in production)
    if settings.ENVIRONMENT.lower() == "production":
        payment_reconcile_scheduler.start()
    else:
        logger.info("Payment reconcile job disabled in non-production environment")

    yield

    # Shutdown logic
    if settings.ENVIRONMENT.lower() == "production":
        payment_reconcile_scheduler.stop()
    if settings.rate_limiting_enabled:
        await FastAPILimiter.close()


app = FastAPI(
    lifespan=lifespan,
    docs_url=None if settings.ENVIRONMENT.lower() == "production" else "/docs",
    redoc_url=None if settings.ENVIRONMENT.lower() == "production" else "/redoc"
)


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler that formats all errors consistently"""
    error_response = {
        "error": {
            "type": exc.__class__.__name__,
            "message": "An error occurred",
            "detail": str(exc),
            "path": request.url.path,
        }
    }

    status_code = 500

    # Handle HTTP exceptions (404, 401, etc.)
    if isinstance(exc, HTTPException):
        status_code = exc.status_code
        error_response["error"]["message"] = exc.detail
        error_response["error"]["detail"] = exc.detail

    # Handle validation errors
    elif isinstance(exc, RequestValidationError):
        status_code = 422
        error_response["error"]["message"] = "Validation error"
        error_response["error"]["detail"] = exc.errors()

    # Log unexpected errors
    if status_code == 500:
        logger.error(f"Unexpected error: {str(exc)}", exc_info=True)
        error_response["error"]["message"] = "Internal server error"
        # Don't expose internal details in production
        error_response["error"]["detail"] = "Please contact support"

    return JSONResponse(
        status_code=status_code,
        content=error_response
    )


# Register the handler for all exceptions
app.add_exception_handler(Exception, global_exception_handler)

# Add the IP whitelist middleware first
app.middleware("http")(ip_whitelist_middleware)

origins = settings.CLIENT_ORIGIN.split(",")  # Splits into ["http://localhost:3000", "https://app.example.com"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(userRoute.router, dependencies=rate_limit(100, 60))
app.include_router(bookingRoute.router, tags=['bookings'], prefix='/api/v1',
                   dependencies=rate_limit(100, 60))
app.include_router(paymentRoute.router, tags=['payments'], prefix='/api/v1',
                   dependencies=rate_limit(30, 60))
app.include_router(calendarRoute.router, tags=['calendar'], prefix='/api/v1',
                   dependencies=rate_limit(100, 60))
app.include_router(reviewRoute.router, tags=['reviews'], prefix='/api/v1',
                   dependencies=rate_limit(20, 60))
app.include_router(providerRoute.router, tags=['provider'], prefix='/api/v1',
                   dependencies=rate_limit(100, 60))
app.include_router(stripeWebhookHandler.router, tags=['StripeWebhook'], prefix='/api/v1',
                   dependencies=rate_limit(100, 60))
app.include_router(admin_provider_routes.router, tags=['AdminProviders'], prefix='/api/v1/admin/providers',
                   dependencies=rate_limit(100, 60))
app.include_router(admin_booking_routes.router, tags=['AdminBookings'], prefix='/api/v1/admin/bookings',
                   dependencies=rate_limit(100, 60))
app.include_router(admin_report_routes.router, tags=['AdminReports'], prefix='/api/v1/admin/reports',
                   dependencies=rate_limit(30, 60))


@app.get("/api/healthchecker", dependencies=rate_limit(100, 60))
def root():
    return {"message": f"Welcome to {settings.PLATFORM_NAME}"}


if __name__ == "__main__":
    uvicorn.run("src.main:app", host="0.0.0.0", port=5001, reload=True, log_level="info")
