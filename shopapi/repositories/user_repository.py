from typing import Optional
from sqlalchemy.orm import Session

from shopapi.models.user import Profile as ProfileModel
from shopapi.schemas.user import User as UserSchema
from shopapi.repositories.base import BaseRepository


class UserRepository(BaseRepository[ProfileModel, UserSchema]):
    """프로필 리포지토리 (외부 인증 시스템의 profiles 테이블 읽기)"""

    def __init__(self, db: Session):
        super().__init__(ProfileModel, UserSchema, db)

    def get_by_email(self, email: str) -> Optional[UserSchema]:
        return self.get_by_field("email", email)
