# Base class for calendar engine database models
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all calendar engine ORM models."""

    pass
