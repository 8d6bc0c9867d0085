# marketplace/jobs.py
import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from . import ledger
from .bids import list_job_bids
from .deps import get_session, get_user
from .errors import NotFound, Unauthorized
from .models import JobIn, JobOut, JobDetailOut, JobStatus

log = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/jobs", tags=["jobs"])

JOB_COST_CREDITS = 5
MAX_BIDS = 3
POSTING_ROLES = ("client", "both")

JOB_COLUMNS = (
    "j.id, j.client_id, j.title, j.description, j.budget_min, j.budget_max, j.cost_credits, "
    "j.status, j.max_bids, j.current_bids, j.accepted_bid_id, j.created_at"
)


def _row_to_job(row: Dict[str, Any]) -> JobOut:
    return JobOut(**dict(row))


async def insert_job(db: AsyncSession, client_id: str, payload: JobIn) -> Dict[str, Any]:
    result = await db.execute(
        text("""
            insert into jobs (id, client_id, title, description, budget_min, budget_max,
                              cost_credits, status, max_bids, current_bids)
            values (:id, :client_id, :title, :description, :budget_min, :budget_max,
                    :cost_credits, 'open', :max_bids, 0)
            returning id, client_id, title, description, budget_min, budget_max, cost_credits,
                      status, max_bids, current_bids, accepted_bid_id, created_at
        """),
        {
            "id": str(uuid.uuid4()),
            "client_id": client_id,
            "cost_credits": JOB_COST_CREDITS,
            "max_bids": MAX_BIDS,
            **payload.model_dump(),
        },
    )
    return dict(result.mappings().one())


async def post_job(db: AsyncSession, user: Dict[str, Any], payload: JobIn) -> JobOut:
    """Debit the posting fee and create the job as one transaction."""
    if user["role"] not in POSTING_ROLES:
        raise Unauthorized("Only clients can post jobs")
    try:
        await ledger.debit(db, user["id"], JOB_COST_CREDITS)
        row = await insert_job(db, user["id"], payload)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    log.info(f"Job {row['id']} posted by {user['id']}")
    return _row_to_job(row)


async def get_job(db: AsyncSession, job_id: str) -> JobOut:
    result = await db.execute(
        text(f"""
            select {JOB_COLUMNS}, u.name as client_name
            from jobs j left join users u on u.id = j.client_id
            where j.id = :job_id
        """),
        {"job_id": job_id},
    )
    row = result.mappings().first()
    if not row:
        raise NotFound("Job not found")
    return _row_to_job(row)


async def list_jobs(db: AsyncSession, status: Optional[str] = None) -> List[JobOut]:
    sql = f"select {JOB_COLUMNS}, u.name as client_name from jobs j left join users u on u.id = j.client_id"
    params: Dict[str, Any] = {}
    if status:
        sql += " where j.status = :status"
        params["status"] = status
    sql += " order by j.created_at desc, j.id"
    result = await db.execute(text(sql), params)
    return [_row_to_job(r) for r in result.mappings().all()]


async def list_client_jobs(db: AsyncSession, client_id: str) -> List[JobOut]:
    result = await db.execute(
        text(f"select {JOB_COLUMNS} from jobs j where j.client_id = :uid order by j.created_at desc, j.id"),
        {"uid": client_id},
    )
    return [_row_to_job(r) for r in result.mappings().all()]


# ──────────────────────────────────────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────────────────────────────────────
@router.get("", response_model=List[JobOut])
async def list_jobs_route(
    job_status: Optional[JobStatus] = Query(default=None, alias="status"),
    db: AsyncSession = Depends(get_session),
):
    return await list_jobs(db, job_status)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobIn,
    db: AsyncSession = Depends(get_session),
    user=Depends(get_user),
):
    return await post_job(db, user, payload)


@router.get("/{job_id}", response_model=JobDetailOut)
async def job_detail(job_id: str, db: AsyncSession = Depends(get_session)):
    job = await get_job(db, job_id)
    bids = await list_job_bids(db, job_id)
    return JobDetailOut(**job.model_dump(), bids=bids)
