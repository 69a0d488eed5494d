from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """헬스체크 응답 (DB 연결 상태 포함)"""

    status: str = "healthy"
    database: str = "ok"
