# writeedge/api/v1/routes/health/health.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from writeedge.core.response import success_response
from writeedge.db.deps import get_db
from writeedge.services.evaluation.queue import count_by_status

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request, db: AsyncSession = Depends(get_db)):
    """Liveness plus a snapshot of the evaluation backlog."""
    worker = getattr(request.app.state, "evaluation_worker", None)
    return success_response(
        msg="OK",
        data={
            "worker_running": bool(worker is not None and worker.running),
            "evaluations": await count_by_status(db),
        },
    )
