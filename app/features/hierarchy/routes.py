"""
Hierarchy API routes.

Provides endpoints for delegation, reporting lines, subordinates, org charts
and the caller's resolved data scope.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status

from app.features.audit.sink import AuditSink
from app.features.hierarchy.access import can_access
from app.features.hierarchy.dependencies import (
    client_ip,
    get_accessible_user,
    get_audit_sink,
    get_delegation_manager,
    require_hierarchy_level,
)
from app.features.hierarchy.levels import AccessLevel
from app.features.hierarchy.schemas import (
    AccessCheckResponse,
    AssignReportingRequest,
    DelegateRequest,
    DelegationHistoryResponse,
    DelegationLogResponse,
    DelegationResult,
    HierarchyChartResponse,
    MyHierarchyResponse,
    ScopeResponse,
    SubordinatesResponse,
    SweepResponse,
    UserHierarchy,
    UserSummary,
)
from app.features.hierarchy.scope import resolve_scope
from app.features.hierarchy.service import DelegationManager
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


# ============================================================================
# Delegation Routes
# ============================================================================

@router.post("/delegate", response_model=DelegationResult)
async def delegate_authority(
    body: DelegateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: Annotated[User, Depends(require_hierarchy_level(AccessLevel.DIRECTORATE))],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Delegate authority to a lower-ranked user (directorate and above)."""
    outcome = await manager.delegate(
        current_user.id,
        body.delegatee_id,
        body.authority,
        body.reason,
        body.end_date,
    )

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "DELEGATION_CREATE",
        "Hierarchy",
        after=body.model_dump(),
        origin=client_ip(request),
    )

    return DelegationResult(
        delegatee=UserHierarchy.model_validate(outcome.delegatee),
        log=DelegationLogResponse.model_validate(outcome.log),
    )


@router.delete("/delegate/{delegatee_id}", response_model=UserHierarchy)
async def revoke_delegation(
    delegatee_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: Annotated[User, Depends(require_hierarchy_level(AccessLevel.DIRECTORATE))],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Revoke the delegation the current user granted to delegatee_id."""
    delegatee = await manager.revoke(current_user.id, delegatee_id)

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "DELEGATION_REVOKE",
        "Hierarchy",
        before={"delegatee_id": delegatee_id},
        origin=client_ip(request),
    )

    return delegatee


@router.get("/delegation-history", response_model=DelegationHistoryResponse)
async def get_delegation_history(
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
):
    """Delegations the current user granted and received."""
    history = await manager.get_delegation_history(current_user.id)
    return DelegationHistoryResponse(
        delegated_by=[DelegationLogResponse.model_validate(entry) for entry in history.delegated_by],
        delegated_to=[DelegationLogResponse.model_validate(entry) for entry in history.delegated_to],
    )


@router.post("/check-expired-delegations", response_model=SweepResponse)
async def check_expired_delegations(
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: Annotated[User, Depends(require_hierarchy_level(AccessLevel.SUPER_ADMIN))],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Expire lapsed delegations now (super admin only)."""
    expired = await manager.sweep_expired()

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "DELEGATION_SWEEP",
        "Hierarchy",
        after={"expired": expired},
        origin=client_ip(request),
    )

    return SweepResponse(expired=expired)


# ============================================================================
# Hierarchy Views
# ============================================================================

@router.get("/subordinates", response_model=SubordinatesResponse)
async def get_subordinates(
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
):
    """Users within the current user's scope."""
    subordinates = await manager.get_subordinates(current_user.id)
    return SubordinatesResponse(
        count=len(subordinates),
        data=[UserSummary.model_validate(user) for user in subordinates],
    )


@router.get("/my-hierarchy", response_model=MyHierarchyResponse)
async def get_my_hierarchy(
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
):
    """Current user's placement, delegation state and subordinates."""
    subordinates = await manager.get_subordinates(current_user.id)
    return MyHierarchyResponse(
        user=UserHierarchy.model_validate(current_user),
        subordinates=[UserSummary.model_validate(user) for user in subordinates],
    )


@router.get("/organizational-chart", response_model=HierarchyChartResponse)
@router.get("/organizational-chart/{user_id}", response_model=HierarchyChartResponse)
async def get_organizational_chart(
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
    user_id: Optional[str] = None,
):
    """Org chart around the current user, or around a user the current user may access."""
    if user_id and user_id != current_user.id:
        target = await manager.users.get(user_id)
        if target is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        if not can_access(current_user, target):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this user")

    chart = await manager.get_hierarchy_chart(user_id or current_user.id)
    return HierarchyChartResponse(
        user=UserSummary.model_validate(chart.user),
        manager=UserSummary.model_validate(chart.manager) if chart.manager else None,
        peers=[UserSummary.model_validate(user) for user in chart.peers],
        subordinates=[UserSummary.model_validate(user) for user in chart.subordinates],
    )


@router.post("/assign-reporting", response_model=UserSummary)
async def assign_reporting(
    body: AssignReportingRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    current_user: Annotated[User, Depends(require_hierarchy_level(AccessLevel.MANAGER))],
    manager: Annotated[DelegationManager, Depends(get_delegation_manager)],
    audit: Annotated[AuditSink, Depends(get_audit_sink)],
):
    """Set a user's direct manager (manager and above)."""
    previous = await manager.users.get(body.user_id)
    before = {"reports_to_id": previous.reports_to_id} if previous else None

    user = await manager.assign_reporting_to(body.user_id, body.manager_id)

    background_tasks.add_task(
        audit.record,
        current_user.id,
        "REPORTING_ASSIGN",
        "Hierarchy",
        before=before,
        after={"user_id": user.id, "reports_to_id": user.reports_to_id},
        origin=client_ip(request),
    )

    return user


# ============================================================================
# Scope & Access
# ============================================================================

@router.get("/scope", response_model=ScopeResponse)
async def get_my_scope(current_user: Annotated[User, Depends(get_current_user)]):
    """Per-collection filters restricting what the current user can see."""
    scope = resolve_scope(current_user)
    return ScopeResponse(access_level=current_user.access_level, filters=scope.as_dict())


@router.get("/access/{user_id}", response_model=AccessCheckResponse)
async def check_user_access(target: Annotated[User, Depends(get_accessible_user)]):
    """200 if the current user may act on user_id, 403 otherwise."""
    return AccessCheckResponse(target_id=target.id, allowed=True)
