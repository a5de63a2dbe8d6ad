"""User model."""

import enum
from datetime import date

from sqlalchemy import Date, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from users_api.database import Base
from users_api.models.base import TimestampMixin


class Gender(str, enum.Enum):
    """Self-declared gender."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class User(TimestampMixin, Base):
    """Registered user. ``password_hash`` is internal only."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    gender: Mapped[Gender | None] = mapped_column(
        Enum(Gender, name="gender", values_callable=lambda members: [m.value for m in members]),
        nullable=True,
    )
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
