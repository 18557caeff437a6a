"""
Clinical Decision Support & Alerting Engine

Clinical safety layer for the hospital operations backend:
- NEWS2 early-warning scoring from recorded vitals
- Drug interaction and allergy checking for prescribing
- Clinical alert lifecycle (raise, deduplicate, acknowledge, dismiss)
- Role-based access with JWT authentication and audit logging
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinical_support.config import settings
from clinical_support.database import init_db
from clinical_support.exceptions import ClinicalSupportError
from clinical_support.api.clinical_routes import router as clinical_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Clinical decision support for hospital staff:

    * **NEWS2 Scoring** - Early-warning score from the latest vitals
    * **Drug Safety** - Interaction and allergy cross-reactivity checks
    * **Clinical Alerts** - Deduplicated NEWS2, lab and drug safety alerts
    * **Dashboard** - Active alert counts by severity and type
    """,
    version=settings.VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(clinical_router)


@app.exception_handler(ClinicalSupportError)
async def clinical_support_error_handler(request: Request, exc: ClinicalSupportError):
    """Translate service errors into JSON error responses"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.on_event("startup")
async def startup_event():
    """Initialize database on startup"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.VERSION}...")
    init_db()
    logger.info("API documentation available at /api/docs")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "services": {
            "database": "ok",
            "news2": "ok",
            "drug_interactions": "ok"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
