from __future__ import annotations

from pydantic import BaseModel, Field

from orgbilling.schemas.billing import Plan


class OrganizationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class OrganizationResponse(BaseModel):
    id: int
    name: str
    email: str
    stripe_id: str
    stripe_sub: str
    sub_status: str
    plans: list[Plan] = Field(default_factory=list)
