# evoting/database/unit_of_work.py

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from evoting import db
from evoting.errors import StorageError, VotingError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(session=None):
    """All-or-nothing scope over the session.

    Commits only if the body finishes. Any exception, including
    KeyboardInterrupt or a cancelled worker, rolls everything back before it
    propagates. Storage exceptions surface as StorageError.
    """
    session = session if session is not None else db.session
    try:
        yield session
        session.commit()
    except VotingError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Unit of work rolled back: %s", e.__class__.__name__)
        raise StorageError(str(e)) from e
    except BaseException:
        session.rollback()
        raise
