from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class CallerIdentity(BaseModel):
    user_id: str = Field(min_length=1)
    email: Optional[str] = None


class StoredObject(BaseModel):
    name: str
    path: str

    @classmethod
    def under(cls, user_id: str, name: str) -> "StoredObject":
        return cls(name=name, path=f"{user_id}/{name}")


class EmailMessage(BaseModel):
    sender: str = Field(serialization_alias="from")
    to: List[str]
    subject: str
    html: str
    text: Optional[str] = None

    @field_validator("to")
    def require_recipient(cls, v):
        if not v:
            raise ValueError("at least one recipient is required")
        return v


class ResponseEnvelope(BaseModel):
    ok: bool
    message: str
    details: Optional[str] = None
    error: Optional[str] = None

    def to_content(self) -> dict:
        return self.model_dump(exclude_none=True)
