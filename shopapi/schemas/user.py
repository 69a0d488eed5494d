from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import Optional

from shopapi.models.user import UserRole


class User(BaseModel):
    id: str
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole = UserRole.CUSTOMER
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(self.role)


class TokenData(BaseModel):
    user_id: Optional[str] = None
    email: Optional[str] = None
