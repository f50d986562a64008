"""Generic async CRUD repositories over SQLAlchemy."""

from tablerepo.core.exceptions import AppException, NotFoundException
from tablerepo.repositories.base import Repository, identity, to_row

__all__ = [
    "AppException",
    "NotFoundException",
    "Repository",
    "identity",
    "to_row",
]
