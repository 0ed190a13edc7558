"""
Results core store providing criteria-based access to the persisted results
"""

import logging
from typing import Any, List, Optional

import sqlalchemy
import sqlalchemy.orm

from . import models
from .. import schemas


logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    schemas.SortKey.ID: models.Result.id,
    schemas.SortKey.VALUE: models.Result.value,
    schemas.SortKey.OWNER: models.Result.owner_id
}


class ResultStore:
    """
    Thin layer around a database session to find, add and remove results

    Every mutation only becomes visible to other sessions after ``commit``,
    which either persists all pending changes or none of them.
    """

    def __init__(self, session: sqlalchemy.orm.Session):
        self.session = session

    def find_one(self, **criteria: Any) -> Optional[models.Result]:
        """
        Return the single result matching all criteria or None if there's no such result
        """

        return self.session.query(models.Result).filter_by(**criteria).one_or_none()

    def find_all(
            self,
            sort: schemas.SortKey = schemas.SortKey.ID,
            **criteria: Any
    ) -> List[models.Result]:
        """
        Return all results matching all criteria, ordered ascending by the sort key and the ID
        """

        query = self.session.query(models.Result).filter_by(**criteria)
        column = SORT_COLUMNS[schemas.SortKey(sort)]
        if column is models.Result.id:
            return query.order_by(sqlalchemy.asc(column)).all()
        return query.order_by(sqlalchemy.asc(column), sqlalchemy.asc(models.Result.id)).all()

    def get_user(self, user_id: int) -> Optional[models.User]:
        return self.session.get(models.User, user_id)

    def find_user(self, email: str) -> Optional[models.User]:
        return self.session.query(models.User).filter_by(email=email).one_or_none()

    def add(self, result: models.Result) -> models.Result:
        self.session.add(result)
        return result

    def remove(self, result: models.Result):
        logger.debug(f"Deleting model {result!r}...")
        self.session.delete(result)

    def commit(self):
        self.session.commit()
