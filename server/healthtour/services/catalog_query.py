"""Catalog query builder.

Search criteria are turned into typed predicate fragments, each rendering one
SQLAlchemy clause. Every supplied fragment must hold, so the final predicate is
their conjunction.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from sqlalchemy import Select, and_, func, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..models.package import Package, PackageExperienceType, PackageService, PackageTag
from ..schemas.package import AdminSearchPackagesRequest, DurationBucket, SearchPackagesRequest

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Package.created_at,
    "price": Package.base_price,
    "rating": Package.rating_average,
    "title": Package.title,
    "duration": Package.duration_days,
}

DURATION_BUCKETS: dict[DurationBucket, tuple[int, Optional[int]]] = {
    DurationBucket.SHORT: (1, 3),
    DurationBucket.WEEK: (4, 7),
    DurationBucket.TWO_WEEKS: (8, 14),
    DurationBucket.LONG: (15, None),
}


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring match across the package's searchable text."""

    term: str

    def clause(self) -> ColumnElement[bool]:
        term = self.term
        return or_(
            Package.title.icontains(term, autoescape=True),
            Package.description.icontains(term, autoescape=True),
            Package.city.icontains(term, autoescape=True),
            Package.country.icontains(term, autoescape=True),
            Package.facility_name.icontains(term, autoescape=True),
            Package.category.icontains(term, autoescape=True),
            Package.tags.any(PackageTag.name.icontains(term, autoescape=True)),
        )


@dataclass(frozen=True)
class Equals:
    column: Any
    value: Any

    def clause(self) -> ColumnElement[bool]:
        return self.column == self.value


@dataclass(frozen=True)
class LocationMatch:
    """
    Location filter.

    ``"City, Country"`` requires both parts to match; a single token matches
    either the city or the country.
    """

    city: Optional[str] = None
    country: Optional[str] = None
    either: Optional[str] = None

    @classmethod
    def parse(cls, location: str) -> "LocationMatch":
        if "," in location:
            city, _, country = location.partition(",")
            return cls(city=city.strip() or None, country=country.strip() or None)
        return cls(either=location.strip())

    def clause(self) -> ColumnElement[bool]:
        if self.either:
            return or_(
                Package.city.icontains(self.either, autoescape=True),
                Package.country.icontains(self.either, autoescape=True),
            )
        parts = []
        if self.city:
            parts.append(Package.city.icontains(self.city, autoescape=True))
        if self.country:
            parts.append(Package.country.icontains(self.country, autoescape=True))
        return and_(*parts) if parts else true()


@dataclass(frozen=True)
class Range:
    """Inclusive range; either bound may be omitted."""

    column: Any
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    def clause(self) -> ColumnElement[bool]:
        parts = []
        if self.minimum is not None:
            parts.append(self.column >= self.minimum)
        if self.maximum is not None:
            parts.append(self.column <= self.maximum)
        return and_(*parts) if parts else true()


@dataclass(frozen=True)
class AnyOf:
    """Package has at least one child row whose name is in ``values``."""

    relationship: Any
    name_column: Any
    values: tuple[str, ...]

    def clause(self) -> ColumnElement[bool]:
        return self.relationship.any(self.name_column.in_(self.values))


@dataclass
class CatalogQuery:
    """Compiled catalog query: predicate, ordering and page window."""

    predicate: ColumnElement[bool]
    order_by: list[Any]
    page: int
    limit: int
    fragments: list[Any] = field(default_factory=list)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def statement(self) -> Select:
        return (
            select(Package)
            .where(self.predicate)
            .order_by(*self.order_by)
            .offset(self.offset)
            .limit(self.limit)
        )

    def count_statement(self) -> Select:
        return select(func.count()).select_from(Package).where(self.predicate)


def parse_sort(sort: Optional[str]) -> list[Any]:
    """
    Turn a ``-field`` style sort key into ORDER BY clauses.

    Raises:
        ValidationError: If the field is not sortable
    """
    sort = (sort or "-created_at").strip()
    descending = sort.startswith("-")
    key = sort.lstrip("-+")
    column = SORT_COLUMNS.get(key)
    if column is None:
        raise ValidationError(
            detail=f"Cannot sort packages by '{key}'",
            errors={"sort": sorted(SORT_COLUMNS)}
        )
    primary = column.desc() if descending else column.asc()
    # Stable order across pages
    return [primary, Package.id.asc()]


def page_limit(limit: Optional[int]) -> int:
    return min(limit or settings.default_page_size, settings.max_page_size)


def build_fragments(request: SearchPackagesRequest) -> list[Any]:
    fragments: list[Any] = []

    if request.search and request.search.strip():
        fragments.append(TextMatch(request.search.strip()))

    if request.category:
        fragments.append(Equals(Package.category, request.category.value))

    if request.location and request.location.strip():
        fragments.append(LocationMatch.parse(request.location))

    if request.min_price is not None or request.max_price is not None:
        fragments.append(Range(Package.base_price, request.min_price, request.max_price))

    if request.duration:
        low, high = DURATION_BUCKETS[request.duration]
        fragments.append(Range(Package.duration_days, low, high))

    if request.experience_types:
        fragments.append(AnyOf(
            Package.experience_types,
            PackageExperienceType.name,
            tuple(e.value for e in request.experience_types)
        ))

    if request.services:
        fragments.append(AnyOf(
            Package.services,
            PackageService.name,
            tuple(request.services)
        ))

    return fragments


def combine(fragments: Sequence[Any]) -> ColumnElement[bool]:
    if not fragments:
        return true()
    return and_(*(fragment.clause() for fragment in fragments))


def build_catalog_query(request: SearchPackagesRequest) -> CatalogQuery:
    """
    Build the public catalog query.

    Only active packages are ever returned, regardless of the criteria.
    """
    fragments = [Equals(Package.is_active, True), *build_fragments(request)]
    return CatalogQuery(
        predicate=combine(fragments),
        order_by=parse_sort(request.sort),
        page=request.page,
        limit=page_limit(request.limit),
        fragments=fragments
    )


def build_admin_catalog_query(request: AdminSearchPackagesRequest) -> CatalogQuery:
    """Build the administrative catalog query, including retired packages unless excluded."""
    fragments = build_fragments(request)
    if not request.include_inactive:
        fragments.insert(0, Equals(Package.is_active, True))

    logger.debug(
        "Admin catalog query built",
        extra={"fragment_count": len(fragments), "include_inactive": request.include_inactive}
    )

    return CatalogQuery(
        predicate=combine(fragments),
        order_by=parse_sort(request.sort),
        page=request.page,
        limit=page_limit(request.limit),
        fragments=fragments
    )
