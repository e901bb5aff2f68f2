"""Process-restart recovery.

A previous process may have died with sessions still marked valid; left
alone, those can lock their owners out until they go stale. At startup every
valid session is invalidated. Missing tables (fresh install, migrations not
yet applied) are a warning, never a startup failure.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db
from security import session as session_store

logger = logging.getLogger(__name__)


def reset_sessions_on_startup() -> int | None:
    """Returns how many sessions were invalidated, or None if the reset could not run."""
    try:
        count = session_store.invalidate_all()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("Startup session reset skipped (schema not ready?): %s", exc)
        return None

    if count:
        logger.warning("Startup: invalidated %s session(s) left valid by a previous process", count)
    else:
        logger.info("Startup: no stale valid sessions to reset")
    return count
