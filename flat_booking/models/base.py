from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for the ORM models describing the hosted booking schema.

    The service never creates tables at runtime; Alembic migrations own the
    schema and SqlStore only reads ``Base.metadata`` to build statements.
    """

    pass
