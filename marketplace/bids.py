# marketplace/bids.py
import logging
import uuid
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import get_session, get_user
from .errors import BidCapReached, DuplicateBid, JobClosed, NotFound, Unauthorized
from .models import BidIn, BidOut

log = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["bids"])

BIDDING_ROLES = ("freelancer", "both")

BID_COLUMNS = "b.id, b.job_id, b.professional_id, b.amount, b.message, b.status, b.created_at"


async def _load_job(db: AsyncSession, job_id: str) -> Dict[str, Any]:
    result = await db.execute(
        text("select id, status, current_bids, max_bids from jobs where id = :job_id"),
        {"job_id": job_id},
    )
    row = result.mappings().first()
    if not row:
        raise NotFound("Job not found")
    return dict(row)


def _closed_error(job: Dict[str, Any]) -> JobClosed:
    # a job that closed by filling up reports the cap, anything else is just closed
    if job["current_bids"] >= job["max_bids"]:
        return BidCapReached("This job has reached the maximum number of proposals.")
    return JobClosed("This job is no longer accepting proposals.")


async def _has_bid(db: AsyncSession, job_id: str, professional_id: str) -> bool:
    result = await db.execute(
        text("select 1 from bids where job_id = :job_id and professional_id = :pid"),
        {"job_id": job_id, "pid": professional_id},
    )
    return result.first() is not None


async def _claim_bid_slot(db: AsyncSession, job_id: str):
    """Compare-and-swap on current_bids; closes the job when the last slot goes."""
    result = await db.execute(
        text("""
            update jobs
            set current_bids = current_bids + 1,
                status = case when current_bids + 1 >= max_bids then 'closed' else 'open' end,
                updated_at = current_timestamp
            where id = :job_id and status = 'open' and current_bids < max_bids
            returning current_bids, status
        """),
        {"job_id": job_id},
    )
    return result.mappings().first()


async def _insert_bid(db: AsyncSession, job_id: str, professional_id: str, payload: BidIn) -> Dict[str, Any]:
    result = await db.execute(
        text("""
            insert into bids (id, job_id, professional_id, amount, message, status)
            values (:id, :job_id, :pid, :amount, :message, 'pending')
            returning id, job_id, professional_id, amount, message, status, created_at
        """),
        {
            "id": str(uuid.uuid4()),
            "job_id": job_id,
            "pid": professional_id,
            "amount": payload.amount,
            "message": payload.message,
        },
    )
    return dict(result.mappings().one())


async def submit_bid(db: AsyncSession, user: Dict[str, Any], job_id: str, payload: BidIn) -> BidOut:
    """
    Preconditions, first failure wins:
      1. bidder is not a client-only account      -> Unauthorized
      2. job is open                              -> JobClosed
      3. job still has a free slot                -> BidCapReached
      4. bidder has no bid on this job yet        -> DuplicateBid
    The slot claim and the bid insert commit together.
    """
    if user["role"] not in BIDDING_ROLES:
        raise Unauthorized("Only freelancers can submit proposals")

    job = await _load_job(db, job_id)
    if job["status"] != "open":
        raise _closed_error(job)
    if job["current_bids"] >= job["max_bids"]:
        raise BidCapReached("This job has reached the maximum number of proposals.")
    if await _has_bid(db, job_id, user["id"]):
        raise DuplicateBid("You have already submitted a proposal for this job.")

    try:
        slot = await _claim_bid_slot(db, job_id)
        if slot is None:
            # lost a race with another bidder
            raise _closed_error(await _load_job(db, job_id))
        row = await _insert_bid(db, job_id, user["id"], payload)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateBid("You have already submitted a proposal for this job.")
    except Exception:
        await db.rollback()
        raise

    log.info(
        f"Bid {row['id']} on job {job_id} by {user['id']} "
        f"({slot['current_bids']} bids, job {slot['status']})"
    )
    return BidOut(**row)


async def list_job_bids(db: AsyncSession, job_id: str) -> List[BidOut]:
    result = await db.execute(
        text(f"select {BID_COLUMNS} from bids b where b.job_id = :job_id order by b.created_at desc, b.id"),
        {"job_id": job_id},
    )
    return [BidOut(**r) for r in result.mappings().all()]


async def list_professional_bids(db: AsyncSession, professional_id: str) -> List[BidOut]:
    result = await db.execute(
        text(f"""
            select {BID_COLUMNS}, j.title as job_title, j.status as job_status
            from bids b join jobs j on j.id = b.job_id
            where b.professional_id = :pid
            order by b.created_at desc, b.id
        """),
        {"pid": professional_id},
    )
    return [BidOut(**r) for r in result.mappings().all()]


# ──────────────────────────────────────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────────────────────────────────────
@router.post("/jobs/{job_id}/bids", response_model=BidOut, status_code=status.HTTP_201_CREATED)
async def create_bid(
    job_id: str,
    payload: BidIn,
    db: AsyncSession = Depends(get_session),
    user=Depends(get_user),
):
    return await submit_bid(db, user, job_id, payload)


@router.get("/bids/me", response_model=List[BidOut])
async def my_bids(db: AsyncSession = Depends(get_session), user=Depends(get_user)):
    return await list_professional_bids(db, user["id"])
