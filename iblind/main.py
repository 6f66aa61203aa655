from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from iblind.core.config import settings
from iblind.core.firebase_init import initialize_firebase, get_firebase_status
from iblind.core.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="iBlind Pro API",
    description="Point-of-service backend for screen protection shops",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Initialize Firebase and start the pending effects scheduler"""
    logger.info("🚀 FastAPI startup event triggered")
    if not get_firebase_status()['available']:
        if initialize_firebase():
            logger.info("✅ Firebase initialized successfully")
        else:
            logger.warning("⚠️ Firebase initialization failed - app will run without Firebase features")
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("⛔ FastAPI shutdown event triggered")
    stop_scheduler()


def safe_include_router(router_module_path: str, router_name: str = "router"):
    """Safely include a router with error handling"""
    try:
        module = __import__(router_module_path, fromlist=[router_name])
        router = getattr(module, router_name)
        app.include_router(router)
        logger.info(f"✅ Successfully included {router_module_path}")
        return True
    except Exception as e:
        logger.exception(f"❌ Failed to include {router_module_path}: {str(e)}")
        return False


logger.info("Loading routers...")

routers_to_load = [
    ("iblind.routers.intake", "New Service Intake"),
    ("iblind.routers.attendances", "Attendances"),
    ("iblind.routers.inventory", "Inventory Management"),
    ("iblind.routers.specialists", "Specialists"),
    ("iblind.routers.dashboard", "Dashboard"),
    ("iblind.routers.tenant", "Store Settings"),
    ("iblind.routers.audit_logs", "Audit"),
]

successful_routers = []
failed_routers = []

for router_path, router_description in routers_to_load:
    if safe_include_router(router_path):
        successful_routers.append(router_description)
    else:
        failed_routers.append(router_description)

logger.info(f"Successfully loaded routers: {successful_routers}")
if failed_routers:
    logger.warning(f"Failed to load routers: {failed_routers}")


@app.get("/")
async def root():
    return {
        "message": "Welcome to the iBlind Pro API",
        "firebase_status": get_firebase_status(),
        "loaded_routers": successful_routers,
        "failed_routers": failed_routers
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "firebase_available": get_firebase_status()['available'],
        "loaded_routers": len(successful_routers),
        "failed_routers": len(failed_routers)
    }
