"""
Backlog data models.

`db` is the Flask-SQLAlchemy handle bound to the shared declarative Base;
every model module registers its tables on Base.metadata.
"""

from flask_sqlalchemy import SQLAlchemy

from .base import Base

db = SQLAlchemy(model_class=Base)

from .user import User, UserRole  # noqa: E402
from .client import Client  # noqa: E402
from .pbi import Pbi, PbiType, PbiStatus, Effort  # noqa: E402
from .pbi_comment import PbiComment  # noqa: E402
from .attachment import Attachment  # noqa: E402
from .invitation import Invitation  # noqa: E402

__all__ = [
    "db",
    "Base",
    "User",
    "UserRole",
    "Client",
    "Pbi",
    "PbiType",
    "PbiStatus",
    "Effort",
    "PbiComment",
    "Attachment",
    "Invitation",
]
