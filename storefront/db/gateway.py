"""
Persistence gateway: two privilege levels over one SQLAlchemy session.

as_caller(identity): rows owned by other users are invisible (models with a
user_id column are filtered on it; catalog tables pass through).
as_system(): unrestricted; used by fulfillment, reconciliation and admin.
"""
from typing import TypeVar

from sqlalchemy.orm import Query, Session

from storefront.services.auth.identity import Identity

ModelT = TypeVar("ModelT")


class SystemScope:
    def __init__(self, db: Session) -> None:
        self.db = db

    def query(self, model: type[ModelT]) -> Query:
        return self.db.query(model)

    def get(self, model: type[ModelT], entity_id: str) -> ModelT | None:
        return self.query(model).filter(model.id == entity_id).one_or_none()


class CallerScope(SystemScope):
    def __init__(self, db: Session, identity: Identity) -> None:
        super().__init__(db)
        self.identity = identity

    def query(self, model: type[ModelT]) -> Query:
        q = self.db.query(model)
        owner = getattr(model, "user_id", None)
        if owner is not None:
            q = q.filter(owner == self.identity.user_id)
        return q


class Gateway:
    def __init__(self, db: Session) -> None:
        self.db = db

    def as_caller(self, identity: Identity) -> CallerScope:
        return CallerScope(self.db, identity)

    def as_system(self) -> SystemScope:
        return SystemScope(self.db)
