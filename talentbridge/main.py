# ========================================
# talentbridge/main.py
# ========================================

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from talentbridge.config import ALLOWED_ORIGINS
from talentbridge.database import connect_to_mongo, close_mongo_connection
from talentbridge.services.admission import AdmissionController
from talentbridge.utils.errors import MarketplaceError
from talentbridge.utils.logger import get_logger

# ===========================
# IMPORT ALL ROUTERS
# ===========================

# Pricing
from talentbridge.routes.pricing import router as pricing_router

# Jobs
from talentbridge.routes.job import router as job_router

# Applications
from talentbridge.routes.application import router as application_router

# Pipeline
from talentbridge.routes.admin_assignments import router as admin_assignments_router
from talentbridge.routes.recruiter_dashboard import router as recruiter_dashboard_router
from talentbridge.routes.specialist_dashboard import router as specialist_dashboard_router
from talentbridge.routes.company import router as company_router

# Notifications
from talentbridge.routes.notifications import router as notifications_router

logger = get_logger(__name__)

VERSION = "1.0.0"

# ===========================
# CREATE FASTAPI APP
# ===========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    yield
    await close_mongo_connection()


app = FastAPI(
    title="TalentBridge API",
    description="Recruiting marketplace: credit-priced jobs, recruiter/specialist pipeline, notifications",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# One admission controller per process
app.state.admission = AdmissionController()

# ===========================
# CORS MIDDLEWARE
# ===========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===========================
# ERROR MAPPING
# ===========================

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    """Return the public message; the internal detail only goes to the log."""
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.detail)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.public_message, **exc.extras()},
        headers=exc.headers(),
    )

# ===========================
# REGISTER ROUTERS
# ===========================

app.include_router(pricing_router, tags=["Pricing"])
app.include_router(job_router, tags=["Jobs"])
app.include_router(application_router, tags=["Applications"])
app.include_router(admin_assignments_router)
app.include_router(recruiter_dashboard_router)
app.include_router(specialist_dashboard_router)
app.include_router(company_router)
app.include_router(notifications_router)

# ===========================
# ROOT ENDPOINTS
# ===========================

@app.get("/")
async def root():
    """API root endpoint with feature summary"""
    return {
        "status": "✅ TalentBridge API Running",
        "version": VERSION,
        "documentation": "/docs",
        "endpoints": {
            "public": [
                "/jobs (GET with filters)",
                "/jobs/{job_id}",
                "/applications (POST)",
                "/applications/check",
                "/pricing/calculate",
            ],
            "candidate": ["/my-applications"],
            "company": [
                "/jobs (POST/PUT/DELETE)",
                "/jobs/{id}/publish",
                "/company/applications",
            ],
            "recruiter": [
                "/recruiter/dashboard",
                "/recruiter/applications/{id}/status",
                "/recruiter/applications/{id}/forward",
                "/recruiter/applications/{id}/discard",
                "/recruiter/assignments/{id}/release",
                "/recruiter/assignments/{id}/recall",
            ],
            "specialist": [
                "/specialist/dashboard",
                "/specialist/applications/{id}/status",
                "/specialist/applications/{id}/forward",
                "/specialist/applications/{id}/discard",
                "/specialist/assignments/{id}/status",
            ],
            "admin": [
                "/admin/pricing",
                "/admin/assignments",
                "/admin/applications",
            ],
            "everyone": ["/notifications", "/notifications/count"],
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": VERSION,
    }
