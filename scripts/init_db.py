import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shopapi.database.connection import engine
from shopapi.models import Base  # noqa: F401  모든 모델 등록


def init_db():
    """데이터베이스 테이블 생성"""
    try:
        Base.metadata.create_all(bind=engine)
        print(f"Database initialized: {', '.join(sorted(Base.metadata.tables))}")
    except Exception as e:
        print(f"Database initialization failed: {str(e)}")
        raise


if __name__ == "__main__":
    init_db()
