import datetime, logging
from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.src.db import sessionMaker, UserToken
from app.src.core.approval import expireApprovals

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("Cleaner")


def removeExpiredTokens(session: Session) -> int:
    currentTime = datetime.datetime.now(datetime.timezone.utc)
    result = session.execute(delete(UserToken).where(UserToken.expires_at < currentTime))
    session.commit()
    deletedCount = result.rowcount
    logger.info(f"Removed {deletedCount} tokens from {UserToken.__tablename__} table")
    return deletedCount


def expireStaleApprovals(session: Session) -> int:
    expiredCount = expireApprovals(session)
    logger.info(f"Expired {expiredCount} pending approvals")
    return expiredCount


def main():
    try:
        with sessionMaker() as session:
            removeExpiredTokens(session)
            expireStaleApprovals(session)
    except Exception:
        logger.exception("cleaner.py failed")
        raise


if __name__ == "__main__":
    main()
