"""
Tenant-scoped access to domain rows.

Every query made on behalf of a hospital user goes through
:func:`scoped`, which adds the caller's tenant as an equality filter.
Lookups of a single row that fall outside the caller's tenant raise
:class:`~hms.errors.NotFound`, exactly as if the row did not exist.
List endpoints describe their search/sort/filter vocabulary with a
:class:`Listing` and parse request parameters into a :class:`ListQuery`.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import reduce
from operator import or_
from typing import Any, Mapping, Optional

from django.db.models import Model, Q, QuerySet

from hms.errors import Forbidden, NotFound, ValidationFailed
from hms.roles import Action, can_perform

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def authorize(actor, action: Action) -> None:
    """Raise :class:`Forbidden` unless one of the actor's roles allows ``action``."""
    if actor is None or not getattr(actor, 'is_authenticated', False):
        raise Forbidden()
    if not can_perform(actor.roles, action):
        raise Forbidden(f"Action '{action.value}' is not permitted for your role")


def tenant_of(actor) -> str:
    """Return the actor's tenant id; tenant-less actors cannot use tenant data."""
    if not actor.tenant_id:
        raise Forbidden('This action requires a hospital account')
    return actor.tenant_id


def scoped(queryset: QuerySet, actor, *, tenant_field: str = 'tenant') -> QuerySet:
    return queryset.filter(**{f'{tenant_field}_id': tenant_of(actor)})


def get_scoped_or_404(queryset: QuerySet, actor, *, tenant_field: str = 'tenant',
                      label: str = 'Record', **lookup) -> Model:
    obj = scoped(queryset, actor, tenant_field=tenant_field).filter(**lookup).first()
    if obj is None:
        raise NotFound(f'{label} not found')
    return obj


@dataclass(frozen=True)
class Listing:
    """Per-resource vocabulary for list queries.

    ``search_fields`` are ORM lookups matched case-insensitively;
    ``sort_fields`` maps public names to ORM fields; ``filters`` maps a
    public filter name to a callable returning a ``Q`` for its value.
    """
    search_fields: tuple[str, ...] = ()
    sort_fields: Mapping[str, str] = field(default_factory=lambda: {'createdAt': 'created_at'})
    default_sort: str = 'createdAt'
    filters: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class ListQuery:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    search: str = ''
    sort_by: str = 'createdAt'
    sort_order: str = 'desc'
    filters: dict = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: Mapping[str, Any], listing: Listing) -> 'ListQuery':
        page = _positive_int(params.get('page'), DEFAULT_PAGE, 'page')
        limit = min(_positive_int(params.get('limit'), DEFAULT_LIMIT, 'limit'), MAX_LIMIT)
        sort_by = params.get('sortBy') or listing.default_sort
        if sort_by not in listing.sort_fields:
            raise ValidationFailed(details={'sortBy': [f'Unsupported sort field: {sort_by}']})
        sort_order = (params.get('sortOrder') or 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationFailed(details={'sortOrder': ['Must be asc or desc']})
        filters = {
            name: params.get(name)
            for name in listing.filters
            if params.get(name) not in (None, '')
        }
        return cls(page=page, limit=limit, search=(params.get('search') or '').strip(),
                   sort_by=sort_by, sort_order=sort_order, filters=filters)

    def apply(self, queryset: QuerySet, listing: Listing) -> QuerySet:
        if self.search and listing.search_fields:
            queryset = queryset.filter(
                reduce(or_, (Q(**{f'{f}__icontains': self.search}) for f in listing.search_fields))
            )
        for name, value in self.filters.items():
            queryset = queryset.filter(listing.filters[name](value))
        order_field = listing.sort_fields[self.sort_by]
        prefix = '-' if self.sort_order == 'desc' else ''
        return queryset.order_by(f'{prefix}{order_field}', f'{prefix}pk')

    def paginate(self, queryset: QuerySet) -> tuple[list, dict]:
        total = queryset.count()
        start = (self.page - 1) * self.limit
        rows = list(queryset[start:start + self.limit])
        return rows, build_pagination(self.page, self.limit, total)


def build_pagination(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }


def list_scoped(queryset: QuerySet, actor, params: Mapping[str, Any], listing: Listing,
                *, tenant_field: str = 'tenant') -> tuple[list, dict]:
    """Filter, sort and paginate ``queryset`` within the actor's tenant."""
    query = ListQuery.from_params(params, listing)
    qs = query.apply(scoped(queryset, actor, tenant_field=tenant_field), listing)
    return query.paginate(qs)


def list_unscoped(queryset: QuerySet, params: Mapping[str, Any], listing: Listing) -> tuple[list, dict]:
    """Platform-wide listing, for super administrator views only."""
    query = ListQuery.from_params(params, listing)
    return query.paginate(query.apply(queryset, listing))


def bool_param(value: Optional[str]) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ('1', 'true', 'yes'):
        return True
    if lowered in ('0', 'false', 'no'):
        return False
    raise ValidationFailed(details={'filter': [f'Expected a boolean, got {value!r}']})


def _positive_int(raw, default: int, name: str) -> int:
    if raw in (None, ''):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationFailed(details={name: ['Must be a positive integer']}) from None
    if value < 1:
        raise ValidationFailed(details={name: ['Must be a positive integer']})
    return value
