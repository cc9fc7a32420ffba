from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class UserSnapshot(BaseModel):
    """The slice of a user the notification engine needs: who to email
    and whose ledger to consult."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: Optional[str] = None
    role: str = "user"
    avatar_url: Optional[str] = None
    join_date: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)
