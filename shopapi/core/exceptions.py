from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class BaseAPIException(HTTPException):
    """API 에러 베이스 - detail에 표준 에러 envelope을 담는다"""

    status_code_default: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code_default: str = "INTERNAL_001"
    message_default: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.error_code = error_code or self.error_code_default
        self.message = message or self.message_default
        self.details = details or {}

        super().__init__(
            status_code=status_code or self.status_code_default,
            detail={
                "success": False,
                "error": {
                    "code": self.error_code,
                    "message": self.message,
                    "details": self.details,
                },
            },
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message


class AuthenticationError(BaseAPIException):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    error_code_default = "AUTH_001"
    message_default = "Authentication failed"


class AuthorizationError(BaseAPIException):
    status_code_default = status.HTTP_403_FORBIDDEN
    error_code_default = "AUTH_002"
    message_default = "Access forbidden"


class ValidationError(BaseAPIException):
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code_default = "VALIDATION_001"
    message_default = "Validation failed"


class BusinessLogicError(BaseAPIException):
    """비즈니스 규칙 위반 (400) - 호출부에서 에러 코드를 지정"""

    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, error_code: str, message: str, details: Optional[Dict] = None):
        super().__init__(message=message, details=details, error_code=error_code)


class NotFoundError(BaseAPIException):
    status_code_default = status.HTTP_404_NOT_FOUND
    error_code_default = "NOT_FOUND_001"
    message_default = "Resource not found"


class ConflictError(BaseAPIException):
    status_code_default = status.HTTP_409_CONFLICT
    error_code_default = "CONFLICT_001"
    message_default = "Resource conflict"


class InternalServerError(BaseAPIException):
    pass


class InsufficientBalanceError(BaseAPIException):
    """포인트 잔액 부족 - 필요 포인트와 보유 포인트를 함께 보고"""

    status_code_default = status.HTTP_400_BAD_REQUEST
    error_code_default = "BALANCE_001"
    message_default = "Insufficient points balance"

    def __init__(self, required_points: int, available: int, message: Optional[str] = None):
        self.required_points = required_points
        self.available = available
        super().__init__(
            message=message,
            details={"required_points": required_points, "available": available},
        )


class InvalidSignatureError(BaseAPIException):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    error_code_default = "SIGNATURE_001"
    message_default = "Invalid webhook signature"
