# marketplace/users.py
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .bids import list_professional_bids
from .deps import USER_COLUMNS, fetch_user, get_auth_user_id, get_session, get_user
from .errors import DuplicateProfile, Unauthorized
from .jobs import list_client_jobs, list_jobs
from .models import ClientDashboardOut, FreelancerDashboardOut, UserIn, UserOut

log = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["users"])

# signup grant by role
STARTING_CREDITS = {"client": 25, "freelancer": 10, "both": 25}


async def create_profile(db: AsyncSession, auth_user_id: str, payload: UserIn) -> UserOut:
    if await fetch_user(db, auth_user_id):
        raise DuplicateProfile("Profile already exists")
    try:
        result = await db.execute(
            text(f"""
                insert into users (id, email, name, role, credits)
                values (:id, :email, :name, :role, :credits)
                returning {USER_COLUMNS}
            """),
            {
                "id": auth_user_id,
                "credits": STARTING_CREDITS[payload.role],
                **payload.model_dump(),
            },
        )
        row = result.mappings().one()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateProfile("Profile already exists")
    log.info(f"Created {payload.role} profile {auth_user_id} with {row['credits']} credits")
    return UserOut(**row)


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: UserIn,
    db: AsyncSession = Depends(get_session),
    auth_user_id: str = Depends(get_auth_user_id),
):
    return await create_profile(db, auth_user_id, payload)


@router.get("/users/me", response_model=UserOut)
async def me(user=Depends(get_user)):
    return user


@router.get("/dashboard/client", response_model=ClientDashboardOut)
async def client_dashboard(db: AsyncSession = Depends(get_session), user=Depends(get_user)):
    if user["role"] == "freelancer":
        raise Unauthorized("Client dashboard is for client accounts")
    jobs = await list_client_jobs(db, user["id"])
    return {
        "user": user,
        "jobs": jobs,
        "active_jobs": sum(1 for j in jobs if j.status == "open"),
        "completed_jobs": sum(1 for j in jobs if j.status == "completed"),
        "total_spent": sum(j.cost_credits for j in jobs),
    }


@router.get("/dashboard/freelancer", response_model=FreelancerDashboardOut)
async def freelancer_dashboard(db: AsyncSession = Depends(get_session), user=Depends(get_user)):
    if user["role"] == "client":
        raise Unauthorized("Freelancer dashboard is for freelancer accounts")
    bids = await list_professional_bids(db, user["id"])
    return {
        "user": user,
        "open_jobs": await list_jobs(db, "open"),
        "bids": bids,
        "pending_bids": sum(1 for b in bids if b.status == "pending"),
        "won_bids": sum(1 for b in bids if b.status == "accepted"),
    }
