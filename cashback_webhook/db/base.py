from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# constraint names are identical on PostgreSQL and SQLite
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
