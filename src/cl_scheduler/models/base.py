"""Declarative base shared by all scheduler tables."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
