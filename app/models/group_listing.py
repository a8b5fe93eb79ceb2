from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GroupListing(BaseModel):
    """One submitted group entry, persisted in the JSON document."""

    # Stored and served with camelCase keys (groupName, imagePath, createdAt)
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "6f1c2a8e-3d0b-4f57-9a41-0d6f7f4d8a11",
                "username": "alice",
                "groupName": "Readers",
                "groupLink": "https://chat.whatsapp.com/ABC123",
                "imagePath": None,
                "createdAt": 1735689600000,
            }
        },
    )

    id: str
    username: str = Field(..., min_length=1)
    group_name: str = Field(..., min_length=1)
    group_link: str = Field(..., min_length=1)
    image_path: Optional[str] = None
    created_at: int  # epoch milliseconds

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class ListingDocument(BaseModel):
    """The whole persisted database document: {"groups": [...]}."""

    groups: List[GroupListing] = Field(default_factory=list)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
