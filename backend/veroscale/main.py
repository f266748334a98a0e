"""FastAPI application."""
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from .config import DEFAULT_JWT_SECRET, settings
from .domain_errors import DomainError
from .problem_details import handle_domain_error, handle_validation_error
from .routers import auth, dashboard, iot, issues, materials, users, weights
from .services.rate_limit import rate_limit_middleware

# Create app
app = FastAPI(
    title="VeroScale",
    version="1.0.0",
    description="Backend API for material weight tracking, approval and IoT scale ingestion"
)

# Production safety checks (fail closed on insecure config).
if settings.ENV.lower() == "production" and settings.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
    raise RuntimeError("JWT_SECRET_KEY must be changed from the default in production.")
if settings.ENV.lower() == "production" and not settings.cors_origins:
    raise RuntimeError("ALLOWED_ORIGINS must be set in production (explicit frontend origin required).")
if settings.ENV.lower() == "production" and any(origin.strip() == "*" for origin in settings.cors_origins):
    raise RuntimeError("ALLOWED_ORIGINS must be explicit in production (no wildcard when using credentials).")
if settings.STORAGE_BACKEND.lower() == "baas" and not (settings.BAAS_URL and settings.BAAS_SERVICE_KEY):
    raise RuntimeError("STORAGE_BACKEND=baas requires BAAS_URL and BAAS_SERVICE_KEY.")

# Errors
app.add_exception_handler(DomainError, handle_domain_error)
app.add_exception_handler(RequestValidationError, handle_validation_error)

# Rate limiting runs inside CORS so 429 responses still carry CORS headers.
app.middleware("http")(rate_limit_middleware)

# CORS
cors_methods = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
cors_headers = ["Authorization", "Content-Type", "X-IoT-Secret"]
if settings.ENV.lower() != "production":
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=cors_methods,
    allow_headers=cors_headers,
)

# Include routers
app.include_router(auth.router, prefix="/api")
app.include_router(weights.router, prefix="/api")
app.include_router(issues.router, prefix="/api")
app.include_router(materials.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(iot.router, prefix="/api")
app.include_router(users.router, prefix="/api")


@app.get("/api/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "storage_backend": settings.STORAGE_BACKEND,
    }


@app.get("/")
def root():
    """Root endpoint."""
    return {
        "message": "VeroScale API",
        "version": "1.0.0",
        "docs": "/docs"
    }
