# marketplace/db.py
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine

from .config import Settings

USERS_TABLE = "users"
JOBS_TABLE = "jobs"
BIDS_TABLE = "bids"
PROCESSED_EVENTS_TABLE = "processed_events"

# Plain SQL that runs on both Postgres (Supabase) and SQLite.
SCHEMA = [
    """
    create table if not exists users (
        id text primary key,
        email text not null,
        name text not null,
        role text not null check (role in ('client', 'freelancer', 'both')),
        credits integer not null default 0 check (credits >= 0),
        total_rating integer not null default 0,
        total_jobs_completed integer not null default 0,
        is_recommended boolean not null default false,
        created_at timestamp not null default current_timestamp,
        updated_at timestamp not null default current_timestamp
    )
    """,
    """
    create table if not exists jobs (
        id text primary key,
        client_id text not null references users (id),
        title text not null,
        description text not null,
        budget_min integer not null check (budget_min >= 0),
        budget_max integer not null,
        cost_credits integer not null default 5,
        status text not null default 'open' check (status in ('open', 'closed', 'completed')),
        max_bids integer not null default 3,
        current_bids integer not null default 0,
        accepted_bid_id text,
        created_at timestamp not null default current_timestamp,
        updated_at timestamp not null default current_timestamp,
        check (budget_min <= budget_max),
        check (current_bids <= max_bids)
    )
    """,
    """
    create table if not exists bids (
        id text primary key,
        job_id text not null references jobs (id),
        professional_id text not null references users (id),
        amount integer not null check (amount >= 0),
        message text not null default '',
        status text not null default 'pending' check (status in ('pending', 'accepted', 'rejected')),
        created_at timestamp not null default current_timestamp,
        unique (job_id, professional_id)
    )
    """,
    """
    create table if not exists processed_events (
        event_id text primary key,
        event_type text not null,
        created_at timestamp not null default current_timestamp
    )
    """,
    "create index if not exists jobs_client_id_idx on jobs (client_id)",
    "create index if not exists bids_professional_id_idx on bids (professional_id)",
]


def create_engine(settings: Settings) -> AsyncEngine:
    db_url = settings.supabase_db_url
    if not db_url:
        raise RuntimeError("SUPABASE_DB_URL is not set")
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url, echo=False)
    return create_async_engine(db_url, echo=False, pool_size=5, max_overflow=10)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        for ddl in SCHEMA:
            await conn.execute(text(ddl))
