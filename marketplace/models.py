# marketplace/models.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["client", "freelancer", "both"]
JobStatus = Literal["open", "closed", "completed"]
BidStatus = Literal["pending", "accepted", "rejected"]


# ──────────────────────────────────────────────────────────────────────────────
# Users (emails as plain strings to avoid extra dependency)
# ──────────────────────────────────────────────────────────────────────────────
class UserIn(BaseModel):
    email: str = Field(..., min_length=3)
    name: str = Field(..., min_length=1)
    role: Role


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    credits: int
    total_rating: int = 0
    total_jobs_completed: int = 0
    is_recommended: bool = False
    created_at: Optional[datetime] = None


# ──────────────────────────────────────────────────────────────────────────────
# Jobs / bids (money in pence)
# ──────────────────────────────────────────────────────────────────────────────
class JobIn(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    budget_min: int = Field(..., ge=0)
    budget_max: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _budget_range(self):
        if self.budget_min > self.budget_max:
            raise ValueError("budget_min must not exceed budget_max")
        return self


class JobOut(BaseModel):
    id: str
    client_id: str
    title: str
    description: str
    budget_min: int
    budget_max: int
    cost_credits: int
    status: JobStatus
    max_bids: int
    current_bids: int
    accepted_bid_id: Optional[str] = None
    created_at: Optional[datetime] = None
    client_name: Optional[str] = None


class BidIn(BaseModel):
    amount: int = Field(..., ge=0)
    message: str = ""


class BidOut(BaseModel):
    id: str
    job_id: str
    professional_id: str
    amount: int
    message: str
    status: BidStatus
    created_at: Optional[datetime] = None
    job_title: Optional[str] = None
    job_status: Optional[JobStatus] = None


class JobDetailOut(JobOut):
    bids: List[BidOut] = []


class ClientDashboardOut(BaseModel):
    user: UserOut
    jobs: List[JobOut]
    active_jobs: int
    completed_jobs: int
    total_spent: int


class FreelancerDashboardOut(BaseModel):
    user: UserOut
    open_jobs: List[JobOut]
    bids: List[BidOut]
    pending_bids: int
    won_bids: int


# ──────────────────────────────────────────────────────────────────────────────
# Payments (camelCase on the wire, like the web client sends)
# ──────────────────────────────────────────────────────────────────────────────
class CheckoutIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_id: Optional[str] = Field(default=None, alias="packageId")
    user_id: Optional[str] = Field(default=None, alias="userId")


class CheckoutOut(BaseModel):
    sessionId: str


class VerifyPaymentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")


class VerifyPaymentOut(BaseModel):
    verified: bool
    amount: Optional[int] = None
    currency: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    status: Optional[str] = None


class CreditPackageOut(BaseModel):
    id: str
    name: str
    credits: int
    price: float
    priceId: str
    popular: bool


class PackagesOut(BaseModel):
    packages: List[CreditPackageOut]
    publishableKey: Optional[str] = None
    mockMode: bool
