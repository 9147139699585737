from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, IntEnum
from uuid import UUID

from sqlalchemy.orm import Session

from behavior_points.db import utcnow
from behavior_points.errors import Forbidden, Unauthenticated
from behavior_points.models.activity_log import ActivityLog
from behavior_points.models.auth_session import AuthSession
from behavior_points.models.user import User


logger = logging.getLogger(__name__)


class Role(IntEnum):
    STUDENT = 1
    PARENT = 2
    TEACHER = 3
    ADMIN = 4


class AccessTier(str, Enum):
    RESTRICTED = "restricted"
    ELEVATED = "elevated"


@dataclass(frozen=True)
class Identity:
    user_id: UUID
    role: Role


@dataclass(frozen=True)
class Capability:
    """
    Request-scoped access grant produced by `authorize` and passed explicitly
    to every ledger, balance and award call.
    """

    tier: AccessTier
    actor_id: UUID
    role: Role
    subject_id: UUID

    @property
    def elevated(self) -> bool:
        return self.tier == AccessTier.ELEVATED

    def require_subject(self, subject_id: UUID) -> UUID:
        if self.elevated or subject_id == self.subject_id:
            return subject_id
        raise Forbidden("Restricted access is limited to your own points")

    def require_admin(self) -> None:
        if not (self.elevated and self.role == Role.ADMIN):
            raise Forbidden("Administrator access required")


@dataclass(frozen=True)
class OperationPolicy:
    elevated_roles: frozenset
    write: bool
    allow_self: bool = False


_ADMIN = frozenset({Role.ADMIN})
_STAFF = frozenset({Role.ADMIN, Role.TEACHER})

OPERATION_POLICIES: dict[str, OperationPolicy] = {
    "points.read": OperationPolicy(elevated_roles=_STAFF, write=False),
    "points.append": OperationPolicy(elevated_roles=_STAFF, write=True),
    "points.batch": OperationPolicy(elevated_roles=_STAFF, write=True),
    # every role moves its own points only
    "points.transfer": OperationPolicy(elevated_roles=frozenset(), write=True, allow_self=True),
    "balance.sync": OperationPolicy(elevated_roles=_STAFF, write=True, allow_self=True),
    "balance.inspect": OperationPolicy(elevated_roles=_ADMIN, write=False),
    "balance.sync_all": OperationPolicy(elevated_roles=_ADMIN, write=True),
    "awards.evaluate": OperationPolicy(elevated_roles=_STAFF, write=True, allow_self=True),
    "awards.grant": OperationPolicy(elevated_roles=_ADMIN, write=True),
    "catalog.manage": OperationPolicy(elevated_roles=_ADMIN, write=True),
    "categories.manage": OperationPolicy(elevated_roles=_ADMIN, write=True),
    "notifications.dispatch": OperationPolicy(elevated_roles=_ADMIN, write=True),
}


def authenticate(db: Session, token: str | None) -> Identity:
    if not token:
        raise Unauthenticated()

    row = (
        db.query(AuthSession, User)
        .join(User, User.id == AuthSession.user_id)
        .filter(AuthSession.token == token)
        .first()
    )
    if not row:
        raise Unauthenticated("Invalid session")

    session, user = row
    now = utcnow()
    if session.revoked_at is not None:
        raise Unauthenticated("Session revoked")
    if session.expires_at is not None and session.expires_at <= now:
        raise Unauthenticated("Session expired")

    try:
        role = Role(int(user.role_id))
    except ValueError:
        # unknown role ids never get more than the student surface
        logger.warning("unknown role id on user", extra={"user_id": str(user.id), "role_id": user.role_id})
        role = Role.STUDENT

    return Identity(user_id=user.id, role=role)


def _record_elevated_access(db: Session, capability: Capability, operation: str) -> None:
    db.add(
        ActivityLog(
            actor_id=capability.actor_id,
            action=operation,
            subject_id=capability.subject_id,
            details={"role": capability.role.name},
        )
    )
    db.commit()


def authorize(db: Session, identity: Identity, operation: str, subject_id: UUID | None = None) -> Capability:
    policy = OPERATION_POLICIES.get(operation)
    if policy is None:
        raise ValueError(f"Unknown operation: {operation}")

    target = subject_id or identity.user_id

    if identity.role in policy.elevated_roles:
        capability = Capability(
            tier=AccessTier.ELEVATED,
            actor_id=identity.user_id,
            role=identity.role,
            subject_id=target,
        )
        _record_elevated_access(db, capability, operation)
        return capability

    restricted = Capability(
        tier=AccessTier.RESTRICTED,
        actor_id=identity.user_id,
        role=identity.role,
        subject_id=identity.user_id,
    )

    if not policy.write:
        if target != identity.user_id:
            logger.info(
                "read degraded to own subject",
                extra={"operation": operation, "actor_id": str(identity.user_id), "requested_subject": str(target)},
            )
        return restricted

    if policy.allow_self and target == identity.user_id:
        return restricted

    logger.warning(
        "write refused",
        extra={"operation": operation, "actor_id": str(identity.user_id), "subject_id": str(target)},
    )
    if target != identity.user_id:
        raise Forbidden("Not allowed to change another user's points")
    raise Forbidden()


def counterpart(capability: Capability, subject_id: UUID) -> Capability:
    """
    Restricted capability over the other side of a committed transfer, used to
    rebuild that subject's cached balance and awards. Never returned to callers.
    """
    return Capability(
        tier=AccessTier.RESTRICTED,
        actor_id=capability.actor_id,
        role=capability.role,
        subject_id=subject_id,
    )
