from enum import Enum
from typing import Optional, Union

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from shopapi.models.base import BaseModel


class UserRole(str, Enum):
    """사용자 역할 정의"""

    CUSTOMER = "customer"
    ADMIN = "admin"

    @classmethod
    def is_admin(cls, role: Union[str, "UserRole"]) -> bool:
        if isinstance(role, cls):
            role = role.value
        return role == cls.ADMIN.value


class Profile(BaseModel):
    """외부 인증 시스템이 관리하는 사용자 프로필 (id는 UUID 문자열)"""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), default=UserRole.CUSTOMER.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def is_admin(self) -> bool:
        return UserRole.is_admin(str(self.role))
