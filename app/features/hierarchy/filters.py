"""
Compile scope filters into SQLAlchemy clauses.
"""
from sqlalchemy import Select, and_, false, select, true
from sqlalchemy.sql.elements import ColumnElement

from app.features.hierarchy.scope import Collection, FieldIn, RelatedIn, ScopeFilter
from app.features.organizations.models import Organization, Sector, Department, Team
from app.features.permissions.models import Role
from app.features.users.models import User


COLLECTION_MODELS = {
    Collection.ORGANIZATION: Organization,
    Collection.SECTOR: Sector,
    Collection.DEPARTMENT: Department,
    Collection.TEAM: Team,
    Collection.USER: User,
    Collection.ROLE: Role,
}


def _field_clause(model, condition: FieldIn) -> ColumnElement[bool]:
    column = getattr(model, condition.field)
    values = sorted(condition.values)
    if len(values) == 1:
        return column == values[0]
    return column.in_(values)


def _related_clause(model, condition: RelatedIn) -> ColumnElement[bool]:
    related = COLLECTION_MODELS[condition.collection]
    subquery = select(getattr(related, condition.column)).where(
        _field_clause(related, condition.condition)
    )
    return getattr(model, condition.field).in_(subquery)


def to_clause(model, scope_filter: ScopeFilter) -> ColumnElement[bool]:
    """Boolean SQL expression equivalent to scope_filter on model."""
    if scope_filter.deny_all:
        return false()
    if not scope_filter.conditions:
        return true()
    clauses = []
    for condition in scope_filter.conditions:
        if isinstance(condition, RelatedIn):
            clauses.append(_related_clause(model, condition))
        else:
            clauses.append(_field_clause(model, condition))
    return and_(*clauses)


def apply_scope(stmt: Select, model, scope_filter: ScopeFilter) -> Select:
    """
    Restrict a select statement to the records visible under scope_filter.

    Usage:
        scope = resolve_scope(current_user)
        stmt = apply_scope(select(Team), Team, scope.for_collection(Collection.TEAM))
    """
    if scope_filter.unrestricted:
        return stmt
    return stmt.where(to_clause(model, scope_filter))
