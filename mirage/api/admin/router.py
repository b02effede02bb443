from fastapi import APIRouter, Depends

from mirage.api.dependencies import require_admin
from mirage.api.admin.plans import router as plans_router
from mirage.api.admin.usage import router as usage_router


router = APIRouter(
    dependencies=[Depends(require_admin)]
)

router.include_router(
    usage_router,
    prefix="/usage",
    tags=["Admin – Usage"],
)

router.include_router(
    plans_router,
    prefix="/plans",
    tags=["Admin – Plans"],
)
