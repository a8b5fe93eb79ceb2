from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.group_listing import GroupListing


class GroupListingResponse(BaseModel):
    """Schema for a listing as returned by the API."""
    id: str
    username: str
    group_name: str
    group_link: str
    image_path: Optional[str] = None
    created_at: int

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @classmethod
    def from_model(cls, listing: GroupListing) -> "GroupListingResponse":
        return cls.model_validate(listing, from_attributes=True)


class ErrorResponse(BaseModel):
    """Schema for 4xx/5xx bodies."""
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
