"""Базовый класс ORM-моделей с единой схемой имен ограничений."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Единые имена ограничений, чтобы alembic генерировал стабильные миграции.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    # Базовый класс для всех ORM моделей.
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
