"""
outbox 워커 - 처리 시점이 된 작업을 주기적으로 실행

사용법:
    python scripts/run_outbox_worker.py            # 계속 실행
    python scripts/run_outbox_worker.py --once     # 한 번만 처리
"""

import argparse
import logging
import os
import sys
import time

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shopapi.config import settings
from shopapi.database.session import get_db_context
from shopapi.logging_config import setup_logging
from shopapi.services.outbox_service import OutboxService

logger = logging.getLogger("shopapi.outbox_worker")


def run_once(limit: int) -> int:
    with get_db_context() as db:
        result = OutboxService(db, settings).process_pending(limit)
    return result.claimed


def main():
    parser = argparse.ArgumentParser(description="Process outbox tasks")
    parser.add_argument("--once", action="store_true", help="한 번만 처리하고 종료")
    parser.add_argument("--interval", type=float, default=5.0, help="폴링 간격(초)")
    parser.add_argument("--limit", type=int, default=settings.OUTBOX_BATCH_SIZE)
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL)
    logger.info(f"Outbox worker started (interval={args.interval}s, limit={args.limit})")

    while True:
        try:
            claimed = run_once(args.limit)
        except Exception as e:
            logger.error(f"Outbox worker iteration failed: {str(e)}")
            claimed = 0
        if args.once:
            break
        # 가득 찬 배치면 바로 다음 배치 처리
        if claimed < args.limit:
            time.sleep(args.interval)


if __name__ == "__main__":
    main()
