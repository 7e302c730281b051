"""Family and member domain models."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


MAX_NAME_LENGTH = 50


class MemberRole(StrEnum):
    """Member role in the family."""

    PARENT = "parent"
    CHILD = "child"


class Member(BaseModel):
    """Family member data transfer object."""

    id: str = Field(..., description="Unique member ID from the document store")
    display_name: str = Field(default="", description="Display name of the member")
    role: MemberRole = Field(..., description="Guardian (parent) or minor (child)")
    family_id: str | None = Field(default=None, description="Family the member currently belongs to")
    push_token: str | None = Field(default=None, description="Expo push token of the member's device")

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
        return v

    @property
    def is_guardian(self) -> bool:
        return self.role == MemberRole.PARENT


class Family(BaseModel):
    """Family data transfer object."""

    id: str = Field(..., description="Unique family ID from the document store")
    name: str = Field(default="", description="Family name")
    parent_ids: list[str] = Field(default_factory=list, description="Guardian member IDs")
    children_ids: list[str] = Field(default_factory=list, description="Minor member IDs")

    def has_member(self, member_id: str) -> bool:
        return member_id in self.parent_ids or member_id in self.children_ids
