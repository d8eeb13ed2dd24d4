# tripsplit/schemas/user.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class LoginIn(BaseModel):
    user_id: int
    pin: str = Field(..., min_length=4, max_length=4, pattern=r"^\d{4}$")


class UserOut(BaseModel):
    id: int
    name: str
    role: str
    is_admin: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, u) -> "UserOut":
        return cls(id=u.id, name=u.name, role=u.role.value, is_admin=u.is_admin, created_at=u.created_at)


class UserBriefOut(BaseModel):
    """Для экрана входа: только id и имя."""
    id: int
    name: str

    class Config:
        from_attributes = True
