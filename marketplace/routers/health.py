from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.deps import get_gateway, get_session
from marketplace.gateway import PaymentGateway

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health():
    return {"ok": True}


@router.get("/db")
async def health_db(db: AsyncSession = Depends(get_session)):
    try:
        result = await db.execute(text("select count(*) from users"))
        return {"ok": True, "db": "up", "users": result.scalar_one()}
    except Exception as e:
        # surface the error so we know exactly what's wrong
        return {"ok": False, "error": str(e)}


@router.get("/payments")
def health_payments(gateway: PaymentGateway = Depends(get_gateway)):
    return {
        "ok": True,
        "mock_mode": gateway.mock_mode,
        "has_secret_key": bool(gateway.api_key),
        "has_webhook_secret": bool(gateway.webhook_secret),
    }
