from pydantic import BaseModel, Field
from typing import Optional


class PurchaseRequest(BaseModel):
    subscription_id: int
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class BuyCoinsRequest(BaseModel):
    package_id: int
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class PlanInfo(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: int
    lead_coins: int
    duration_days: int
    features: Optional[list[str]] = None
    active: bool

    model_config = {"from_attributes": True}


class PackageInfo(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    lead_coins: int
    price: int
    active: bool

    model_config = {"from_attributes": True}


class RedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)


class RedeemResponse(BaseModel):
    coins_granted: int
    new_balance: int


class LeadViewRequest(BaseModel):
    view_type: str = "contact_info"


class LeadViewResponse(BaseModel):
    granted: bool
    coins_spent: int
    remaining_coins: int
    already_viewed: bool
