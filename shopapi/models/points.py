"""
포인트 시스템 데이터 모델

세 개의 테이블로 구성됩니다:
1. user_points: 사용자별 잔액 행 (잔액/누적 적립/누적 사용). 최초 조회 시 지연 생성
2. points_transactions: 모든 포인트 변동을 기록하는 추가 전용(append-only) 로그
3. order_points: 주문별 포인트 사용/적립 내역 (환불 시 결제 비율 복원에 사용)
"""

from enum import Enum

from sqlalchemy import Column, BigInteger, String, Text, ForeignKey, JSON, Index
from shopapi.models.base import BaseModel, BigIntegerPK


class PointsTransactionType(str, Enum):
    EARNED = "earned"
    SPENT = "spent"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"


class UserPoints(BaseModel):
    """
    사용자 포인트 잔액 테이블 - 사용자당 한 행

    - balance는 원장 연산(조건부 UPDATE)으로만 변경되며 음수가 되지 않음
    - total_earned / total_spent는 단조 증가 누적값
    - 삭제하지 않음
    """

    __tablename__ = "user_points"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)

    # 사용자 ID - profiles 테이블과의 외래키 (사용자당 하나)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, unique=True)

    # 현재 사용 가능한 포인트
    balance = Column(BigInteger, nullable=False, default=0)

    # 누적 적립 포인트 (적립/환불/양수 조정)
    total_earned = Column(BigInteger, nullable=False, default=0)

    # 누적 사용 포인트 (사용/음수 조정)
    total_spent = Column(BigInteger, nullable=False, default=0)


class PointsTransaction(BaseModel):
    """
    포인트 거래 로그 - 생성 후 수정/삭제하지 않음

    amount는 부호 있는 값: 적립/환불/양수 조정은 양수, 사용/음수 조정은 음수
    """

    __tablename__ = "points_transactions"
    __table_args__ = (
        Index("idx_points_transactions_user_created", "user_id", "created_at"),
    )

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    amount = Column(BigInteger, nullable=False)

    # earned | spent | refund | adjustment
    type = Column(String(20), nullable=False)

    # 관리자 조정 시 "(Admin: ...)" 형태로 실행자 표기 포함
    description = Column(Text, nullable=False, default="")

    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=True, index=True)

    # "metadata"는 Declarative에서 예약된 속성명이라 컬럼명만 매핑
    meta = Column("metadata", JSON, nullable=True)


class OrderPoints(BaseModel):
    """
    주문별 포인트 정산 레코드 - order_id 기준 upsert

    사전 사용 선언(pre-use) 또는 결제 확정 시 기록되며,
    환불 시 금액/포인트 비율을 복원하는 유일한 근거가 된다.
    """

    __tablename__ = "order_points"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    points_used = Column(BigInteger, nullable=False, default=0)
    points_earned = Column(BigInteger, nullable=False, default=0)

    # 기록 시점의 points_used 금액 환산값
    discount_amount = Column(BigInteger, nullable=False, default=0)
