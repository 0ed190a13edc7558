"""
Results core database models
"""

import datetime
from typing import List

from sqlalchemy import (
    DateTime, Integer, String,
    CheckConstraint, Column, ForeignKey
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .. import schemas


class User(Base):
    """
    Model representing one end-user who owns results, identified by the email address
    """

    __tablename__ = "users"

    id: int = Column(Integer, nullable=False, primary_key=True, autoincrement=True, unique=True)
    email: str = Column(String(255), nullable=False, unique=True)
    roles: int = Column(Integer, nullable=False, default=int(schemas.Role.USER))
    """Bit set of the user's roles, see ``schemas.Role``"""
    created: datetime.datetime = Column(DateTime, server_default=func.now())

    results: List["Result"] = relationship(
        "Result",
        back_populates="owner",
        cascade="all,delete",
        passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("roles >= 0"),
    )

    @property
    def is_admin(self) -> bool:
        return bool(schemas.Role(self.roles or 0) & schemas.Role.ADMIN)

    @property
    def schema(self) -> schemas.User:
        """
        Pydantic schema representation of the database model that can be sent to clients
        """

        return schemas.User(
            id=self.id,
            email=self.email,
            roles=schemas.Role.names(self.roles or 0),
            created=int(self.created.timestamp())
        )

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email}, roles={self.roles})"


class Result(Base):
    """
    Model representing one timestamped score of exactly one owning user
    """

    __tablename__ = "results"

    id: int = Column(Integer, nullable=False, primary_key=True, autoincrement=True, unique=True)
    value: int = Column(Integer, nullable=False)
    time: datetime.datetime = Column(DateTime, nullable=False)
    """Naive UTC timestamp with second precision"""
    owner_id: int = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner: User = relationship("User", back_populates="results")

    __table_args__ = (
        CheckConstraint("value >= 0"),
    )

    @property
    def schema(self) -> schemas.Result:
        """
        Pydantic schema representation of the database model that can be sent to clients
        """

        return schemas.Result(
            id=self.id,
            value=self.value,
            time=self.time.replace(tzinfo=datetime.timezone.utc),
            owner=schemas.Owner(id=self.owner.id, email=self.owner.email)
        )

    def __repr__(self) -> str:
        return f"Result(id={self.id}, value={self.value}, time={self.time}, owner_id={self.owner_id})"
