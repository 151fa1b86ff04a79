"""
PBI Query Builder - typed backlog filters and the shared listing query.

Query-string filters are parsed into enum sets at the request boundary so the
query layer never sees loosely typed input.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Type, TypeVar
from enum import Enum

from sqlalchemy import select, or_, func
from sqlalchemy.orm import selectinload, joinedload

from models import Pbi, PbiStatus, PbiType
from services.backlog_errors import ValidationError

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value, field_name: str) -> E:
    """Coerce one raw value into `enum_cls`, raising ValidationError with the allowed values."""
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name}. Must be: {allowed}",
            context={'field': field_name, 'value': value},
        )


def parse_enum_set(enum_cls: Type[E], raw: Optional[str], field_name: str) -> FrozenSet[E]:
    """Parse a comma-separated query value ("todo,blocked") into a set of enum members."""
    if not raw:
        return frozenset()
    values = [part.strip() for part in raw.split(',') if part.strip()]
    return frozenset(parse_enum(enum_cls, value, field_name) for value in values)


@dataclass(frozen=True)
class PbiFilter:
    """Validated listing filter. Empty sets mean "no restriction"."""
    statuses: FrozenSet[PbiStatus] = field(default_factory=frozenset)
    types: FrozenSet[PbiType] = field(default_factory=frozenset)
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> "PbiFilter":
        """Build from request.args (or any mapping with .get)."""
        search = (args.get('search') or '').strip() or None
        return cls(
            statuses=parse_enum_set(PbiStatus, args.get('status'), 'status'),
            types=parse_enum_set(PbiType, args.get('type'), 'type'),
            search=search,
        )

    @classmethod
    def of(cls, statuses: Iterable[PbiStatus] = (), types: Iterable[PbiType] = (), search: Optional[str] = None) -> "PbiFilter":
        return cls(statuses=frozenset(statuses), types=frozenset(types), search=search)

    @property
    def is_empty(self) -> bool:
        return not (self.statuses or self.types or self.search)


class PbiQueryBuilder:
    """
    Builds client-scoped PBI queries, always ordered by stack position.
    """

    @staticmethod
    def get_client_pbis_query(client_id: str, filters: Optional[PbiFilter] = None):
        """
        Select the PBIs of one client matching `filters`.

        Args:
            client_id: Owning client
            filters: Optional PbiFilter

        Returns:
            SQLAlchemy select statement ordered top of backlog first
        """
        stmt = select(Pbi).options(
            joinedload(Pbi.created_by),
            selectinload(Pbi.comments),
            selectinload(Pbi.attachments),
        ).where(Pbi.client_id == client_id)

        if filters:
            if filters.statuses:
                stmt = stmt.where(Pbi.status.in_(sorted(s.value for s in filters.statuses)))
            if filters.types:
                stmt = stmt.where(Pbi.type.in_(sorted(t.value for t in filters.types)))
            if filters.search:
                pattern = f"%{filters.search.lower()}%"
                stmt = stmt.where(
                    or_(
                        func.lower(Pbi.title).like(pattern),
                        func.lower(func.coalesce(Pbi.description, '')).like(pattern),
                    )
                )

        return stmt.order_by(Pbi.stack_position.asc())
