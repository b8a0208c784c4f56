# ova/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All tables (users, occurrences, feedback tokens, etc.) inherit from this.

    Import ``ova.models`` before ``create_all()`` so metadata is complete.
    """
    pass
