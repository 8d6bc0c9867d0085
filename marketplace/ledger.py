# marketplace/ledger.py
"""
Credit ledger: the balance column on public.users is the only record.

None of these commit. The caller wraps them in its own unit of work so a
debit and whatever it pays for land (or roll back) together.
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InsufficientCredits, NotFound, ValidationError

log = logging.getLogger("uvicorn.error")


def _check_amount(amount: int) -> None:
    if amount <= 0:
        raise ValidationError(f"Credit amount must be positive, got {amount}")


async def balance(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(text("select credits from users where id = :uid"), {"uid": user_id})
    credits = result.scalar_one_or_none()
    if credits is None:
        raise NotFound(f"User {user_id} not found")
    return credits


async def debit(db: AsyncSession, user_id: str, amount: int) -> int:
    """Take `amount` credits; the WHERE clause is the balance check."""
    _check_amount(amount)
    result = await db.execute(
        text("""
            update users
            set credits = credits - :amount, updated_at = current_timestamp
            where id = :uid and credits >= :amount
            returning credits
        """),
        {"uid": user_id, "amount": amount},
    )
    remaining = result.scalar_one_or_none()
    if remaining is None:
        current = await balance(db, user_id)
        raise InsufficientCredits(
            f"Insufficient credits. You need {amount} credits, you have {current}."
        )
    log.info(f"Debited {amount} credits from user {user_id} (balance {remaining})")
    return remaining


async def credit(db: AsyncSession, user_id: str, amount: int) -> int:
    _check_amount(amount)
    result = await db.execute(
        text("""
            update users
            set credits = credits + :amount, updated_at = current_timestamp
            where id = :uid
            returning credits
        """),
        {"uid": user_id, "amount": amount},
    )
    new_balance = result.scalar_one_or_none()
    if new_balance is None:
        raise NotFound(f"User {user_id} not found")
    log.info(f"Credited {amount} credits to user {user_id} (balance {new_balance})")
    return new_balance
