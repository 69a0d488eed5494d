from typing import Optional
from sqlalchemy.orm import Session
from jose import JWTError

from shopapi.config import Settings
from shopapi.core.security import decode_access_token
from shopapi.repositories.user_repository import UserRepository
from shopapi.schemas.user import TokenData, User as UserSchema
import logging

logger = logging.getLogger(__name__)


class AuthService:
    """Bearer 토큰 검증 - 토큰 발급은 외부 인증 시스템 담당"""

    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.user_repo = UserRepository(db)
        self.settings = settings

    def verify_token(self, token: str) -> Optional[TokenData]:
        try:
            payload = decode_access_token(token)
        except JWTError as e:
            logger.info(f"Rejected access token: {str(e)}")
            return None

        user_id = payload.get("sub") or payload.get("user_id")
        if not user_id:
            return None
        return TokenData(user_id=str(user_id), email=payload.get("email"))

    def get_current_user(self, token: str) -> Optional[UserSchema]:
        """토큰으로 현재 사용자 조회"""
        token_data = self.verify_token(token)
        if not token_data or not token_data.user_id:
            return None

        user = self.user_repo.get_by_id(token_data.user_id)
        if not user or not user.is_active:
            return None

        return user
