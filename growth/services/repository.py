"""
Repository — the storage capabilities the growth services rely on.

Every read is scoped to one organization; a row belonging to another
organization is indistinguishable from a missing one.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager

from sqlalchemy import func, select, update

from growth.errors import GrowthError

logger = logging.getLogger('services.repository')


class Repository(ABC):

    @abstractmethod
    def find(self, model, entity_id):
        """Return the entity with this primary key, or None."""

    @abstractmethod
    def find_one(self, model, *criteria):
        """Return the first entity matching criteria, or None."""

    @abstractmethod
    def query(self, model, *criteria, order_by=None, limit=None):
        """Return a list of entities matching criteria."""

    @abstractmethod
    def add(self, entity):
        """Persist a new entity and return it with its id assigned."""

    @abstractmethod
    def update(self, entity, **fields):
        """Set fields on an entity."""

    @abstractmethod
    def count(self, model, *criteria) -> int:
        """Count entities matching criteria."""

    @abstractmethod
    def increment(self, entity, field, amount=1):
        """Atomically add amount to a numeric column and return the new value."""

    @abstractmethod
    def transaction(self):
        """Context manager: commit on success, roll back on error."""


class SqlAlchemyRepository(Repository):

    def __init__(self, session, organization_id):
        self.session = session
        self.organization_id = organization_id
        self._depth = 0

    def _scoped(self, model):
        return select(model).where(model.organization_id == self.organization_id)

    def find(self, model, entity_id):
        if entity_id is None:
            return None
        stmt = self._scoped(model).where(model.id == entity_id)
        return self.session.scalars(stmt).first()

    def find_one(self, model, *criteria):
        stmt = self._scoped(model).where(*criteria)
        return self.session.scalars(stmt).first()

    def query(self, model, *criteria, order_by=None, limit=None):
        stmt = self._scoped(model).where(*criteria)
        if order_by is not None:
            if not isinstance(order_by, (list, tuple)):
                order_by = (order_by,)
            stmt = stmt.order_by(*order_by)
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def add(self, entity):
        entity.organization_id = self.organization_id
        self.session.add(entity)
        self.session.flush()
        return entity

    def update(self, entity, **fields):
        for name, value in fields.items():
            setattr(entity, name, value)
        self.session.flush()
        return entity

    def count(self, model, *criteria) -> int:
        stmt = (
            select(func.count())
            .select_from(model)
            .where(model.organization_id == self.organization_id, *criteria)
        )
        return self.session.scalar(stmt) or 0

    def increment(self, entity, field, amount=1):
        model = type(entity)
        column = getattr(model, field)
        self.session.flush()
        self.session.execute(
            update(model)
            .where(model.id == entity.id)
            .values({field: func.coalesce(column, 0) + amount})
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(entity, attribute_names=[field])
        return getattr(entity, field)

    @contextmanager
    def transaction(self):
        """Only the outermost block commits; nested blocks join it."""
        self._depth += 1
        try:
            yield self
            if self._depth == 1:
                self.session.commit()
        except GrowthError:
            if self._depth == 1:
                self.session.rollback()
            raise
        except Exception:
            if self._depth == 1:
                self.session.rollback()
                logger.error("Transaction rolled back (org=%s)", self.organization_id, exc_info=True)
            raise
        finally:
            self._depth -= 1
