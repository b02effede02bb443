from fastapi import APIRouter

from mirage.api.v1.routes.health import router as health_router
from mirage.api.v1.routes.auth import router as auth_router
from mirage.api.v1.routes.mock_endpoints import router as mock_endpoints_router
from mirage.api.v1.routes.subscription import router as subscription_router

from mirage.api.admin.router import router as admin_router
api_router = APIRouter()

# ─────────────────────────────────────────────
# Public Routes
# ─────────────────────────────────────────────

api_router.include_router(
    health_router,
    tags=["Health"],
)

api_router.include_router(auth_router, prefix="/auth", tags=["Auth"])
api_router.include_router(mock_endpoints_router, prefix="/mock-endpoints", tags=["Mock Endpoints"])
api_router.include_router(subscription_router, prefix="/subscription", tags=["Subscription"])

# ─────────────────────────────────────────────
# Admin Routes
# ─────────────────────────────────────────────

api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["Admin"],
)
