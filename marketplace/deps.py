# marketplace/deps.py
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from supabase import Client

from .auth import verify_and_get_user_id
from .config import Settings
from .errors import Unauthorized
from .gateway import PaymentGateway

security = HTTPBearer()

USER_COLUMNS = "id, email, name, role, credits, total_rating, total_jobs_completed, is_recommended, created_at"


# Everything below reads the per-process objects main.py puts on app.state.
def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.sessionmaker() as session:
        yield session


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_supabase(request: Request) -> Optional[Client]:
    return request.app.state.supabase


def get_auth_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_app_settings),
    sb: Optional[Client] = Depends(get_supabase),
) -> str:
    return verify_and_get_user_id(credentials.credentials, settings, sb)


async def fetch_user(db: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
    result = await db.execute(
        text(f"select {USER_COLUMNS} from users where id = :uid"),
        {"uid": user_id},
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def get_user(
    db: AsyncSession = Depends(get_session),
    auth_user_id: str = Depends(get_auth_user_id),
) -> Dict[str, Any]:
    user = await fetch_user(db, auth_user_id)
    # close the read transaction so handlers start their own unit of work
    await db.commit()
    if not user:
        raise Unauthorized("No marketplace profile for this account; sign up first")
    return user  # public.users row
