"""
Delegation of authority and reporting lines.

DelegationManager owns the delegation lifecycle

    none -> active -> {revoked, expired}

plus the read-side hierarchy queries (subordinates, org chart, history).
Only a brand-new delegation brings a pair back to active.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from app.core.errors import AuthorityError, NotFoundError, ValidationError
from app.features.hierarchy.levels import AccessLevel, can_manage, parse_level
from app.features.hierarchy.models import DelegationLog, DelegationStatus
from app.features.hierarchy.schemas import AuthorityGrant, DelegatedAuthority
from app.features.hierarchy.scope import Collection, resolve_scope
from app.features.hierarchy.store import DelegationLogStore
from app.features.users.directory import UserDirectory
from app.features.users.models import User
from app.utils import as_utc, get_logger, utcnow


log = get_logger(__name__)


@dataclass
class DelegationOutcome:
    delegatee: User
    log: DelegationLog


@dataclass
class DelegationHistory:
    delegated_by: List[DelegationLog] = field(default_factory=list)
    delegated_to: List[DelegationLog] = field(default_factory=list)


@dataclass
class HierarchyChart:
    user: User
    manager: Optional[User]
    peers: List[User] = field(default_factory=list)
    subordinates: List[User] = field(default_factory=list)


class DelegationManager:
    """
    Stateless service over the user directory and the delegation log store.

    Usage:
        manager = DelegationManager(UserDirectory(db), DelegationLogStore(db))
        outcome = await manager.delegate(me.id, other_id, AuthorityGrant(can_manage_teams=True), "Leave", end)
    """

    def __init__(self, users: UserDirectory, logs: DelegationLogStore):
        self.users = users
        self.logs = logs

    async def delegate(
        self,
        delegator_id: str,
        delegatee_id: str,
        authority: AuthorityGrant,
        reason: Optional[str] = None,
        end_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> DelegationOutcome:
        """
        Grant capabilities to a strictly lower-ranked user.

        Overwrites the delegatee's live delegation fields and records a new
        active log. Earlier active logs for the same pair are revoked so that
        at most one stays active.
        """
        if not delegator_id or not delegatee_id:
            raise ValidationError("Delegator and delegatee IDs are required")

        now = as_utc(now) if now else utcnow()
        end_date = as_utc(end_date)
        if end_date is not None and end_date <= now:
            raise ValidationError("Delegation end date must be in the future")

        delegator = await self.users.get(delegator_id)
        delegatee = await self.users.get(delegatee_id)
        if delegator is None or delegatee is None:
            raise ValidationError("Delegator or delegatee not found")

        if not can_manage(delegator.access_level, delegatee.access_level):
            raise AuthorityError(
                f"Cannot delegate: {delegator.access_level} cannot delegate to {delegatee.access_level}"
            )

        superseded = await self.logs.update_many(
            [
                DelegationLog.delegator_id == delegator_id,
                DelegationLog.delegatee_id == delegatee_id,
                DelegationLog.status == DelegationStatus.ACTIVE.value,
            ],
            {
                "status": DelegationStatus.REVOKED.value,
                "revoked_at": now,
                "revoked_by_id": delegator_id,
            },
        )
        if superseded:
            log.info("Superseded %d active delegation(s) from %s to %s", superseded, delegator_id, delegatee_id)

        delegatee.set_delegation(delegator_id, DelegatedAuthority(**authority.model_dump(), expires_at=end_date))
        await self.users.update(delegatee)

        entry = await self.logs.create(DelegationLog(
            delegator_id=delegator_id,
            delegatee_id=delegatee_id,
            can_manage_teams=authority.can_manage_teams,
            can_manage_departments=authority.can_manage_departments,
            can_approve_reports=authority.can_approve_reports,
            reason=reason,
            start_date=now,
            end_date=end_date,
            status=DelegationStatus.ACTIVE.value,
        ))

        log.info("User %s delegated %s to %s until %s", delegator_id, authority.model_dump(), delegatee_id, end_date)
        return DelegationOutcome(delegatee=delegatee, log=entry)

    async def revoke(self, delegator_id: str, delegatee_id: str, now: Optional[datetime] = None) -> User:
        """
        Clear the delegatee's delegation and revoke the pair's active logs.

        Revoking an already cleared delegatee succeeds and changes no logs.
        """
        if not delegatee_id:
            raise ValidationError("Delegatee ID is required")

        delegatee = await self.users.get(delegatee_id)
        if delegatee is None:
            raise NotFoundError("Delegatee not found")

        now = as_utc(now) if now else utcnow()
        delegatee.clear_delegation()
        await self.users.update(delegatee)

        revoked = await self.logs.update_many(
            [
                DelegationLog.delegator_id == delegator_id,
                DelegationLog.delegatee_id == delegatee_id,
                DelegationLog.status == DelegationStatus.ACTIVE.value,
            ],
            {
                "status": DelegationStatus.REVOKED.value,
                "revoked_at": now,
                "revoked_by_id": delegator_id,
            },
        )

        log.info("User %s revoked delegation to %s (%d log(s))", delegator_id, delegatee_id, revoked)
        return delegatee

    async def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """
        Expire active logs whose end date has passed.

        The delegatee's live fields are cleared only if their own expiry has
        passed too, so a newer delegation that superseded the log survives.
        Each log is flipped with a conditional update; logs revoked or expired
        by someone else mid-sweep are not counted. Returns the number of logs
        this run expired.
        """
        now = as_utc(now) if now else utcnow()
        candidates = await self.logs.find(
            DelegationLog.status == DelegationStatus.ACTIVE.value,
            DelegationLog.end_date.is_not(None),
            DelegationLog.end_date < now,
        )

        expired = 0
        for entry in candidates:
            delegatee = await self.users.get(entry.delegatee_id)
            live_expiry = as_utc(delegatee.delegation_expires_at) if delegatee is not None else None
            if live_expiry is not None and live_expiry < now:
                delegatee.clear_delegation()
                await self.users.update(delegatee)
                log.info("Cleared expired delegation on user %s", delegatee.id)

            expired += await self.logs.update_many(
                [
                    DelegationLog.id == entry.id,
                    DelegationLog.status == DelegationStatus.ACTIVE.value,
                ],
                {"status": DelegationStatus.EXPIRED.value},
            )

        log.info("Delegation sweep expired %d of %d candidate log(s)", expired, len(candidates))
        return expired

    async def get_subordinates(self, user_id: str) -> List[User]:
        """Users within the user's scope, excluding the user. Experts have none."""
        user = await self._require_user(user_id)
        if parse_level(user.access_level) in (None, AccessLevel.EXPERT):
            return []
        scope = resolve_scope(user)
        return await self.users.find(scope.for_collection(Collection.USER), exclude_id=user.id)

    async def get_hierarchy_chart(self, user_id: str) -> HierarchyChart:
        """The user, their direct manager, peers sharing that manager, and subordinates."""
        user = await self._require_user(user_id)
        manager = await self.users.get(user.reports_to_id)

        peers: List[User] = []
        if user.reports_to_id:
            peers = await self.users.find_where(User.reports_to_id == user.reports_to_id, exclude_id=user.id)

        subordinates = await self.get_subordinates(user.id)
        return HierarchyChart(user=user, manager=manager, peers=peers, subordinates=subordinates)

    async def assign_reporting_to(self, user_id: str, manager_id: str) -> User:
        """Set user's direct manager; the manager must strictly outrank the user."""
        if not user_id or not manager_id:
            raise ValidationError("User and manager IDs are required")

        user = await self.users.get(user_id)
        manager = await self.users.get(manager_id)
        if user is None or manager is None:
            raise NotFoundError("User or manager not found")

        if not can_manage(manager.access_level, user.access_level):
            raise AuthorityError("Manager must have higher hierarchy level")

        await self.users.update(user, {"reports_to_id": manager.id})
        log.info("User %s now reports to %s", user.id, manager.id)
        return user

    async def get_delegation_history(self, user_id: str) -> DelegationHistory:
        """Delegations the user granted and received, newest first."""
        delegated_by = await self.logs.find(DelegationLog.delegator_id == user_id, newest_first=True)
        delegated_to = await self.logs.find(DelegationLog.delegatee_id == user_id, newest_first=True)
        return DelegationHistory(delegated_by=delegated_by, delegated_to=delegated_to)

    async def _require_user(self, user_id: str) -> User:
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user
