import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from redis.exceptions import RedisError
from starlette.concurrency import run_in_threadpool

from ..db import get_db
from ..infra.redis_client import get_redis

logger = logging.getLogger("fitpantry.ready")

router = APIRouter()


def _db_ping(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning(f"Database not reachable: {e}")
        return False


@router.get("/ready")
async def ready(db: Session = Depends(get_db)):
    redis_ok = False
    try:
        r = await get_redis()
        await r.ping()
        redis_ok = True
    except (RedisError, OSError) as e:
        logger.warning(f"Redis not reachable: {e}")

    # The session is sync; keep its round trip off the event loop.
    db_ok = await run_in_threadpool(_db_ping, db)

    return {"ok": True, "redis_ok": redis_ok, "db_ok": db_ok}
