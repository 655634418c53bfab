# Main Router - writeedge/api/v1/routes/router.py
from fastapi import APIRouter
from writeedge.api.v1.routes.health.health import router as health_router
from writeedge.api.v1.routes.tests.tests import router as tests_router
from writeedge.api.v1.routes.submissions.submissions import router as submissions_router
from writeedge.api.v1.routes.evaluations.evaluations import router as evaluations_router

router = APIRouter()

router.include_router(health_router)
router.include_router(tests_router)
router.include_router(submissions_router)
router.include_router(evaluations_router)
