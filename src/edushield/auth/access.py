# src/edushield/auth/access.py
"""
Resource-scoped authorization.

``AccessResolver.authorize`` answers allow/deny for a principal acting on
one resource. The role alone is not enough: faculty and parents are
checked against the relationship graph (faculty assignments, guardian
links and the legacy primary-guardian pointer).

Denial is a value, not an exception. Callers at the HTTP edge turn
``Decision.DENY`` into a 403 (see ``edushield.auth.deps``).
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Protocol

from edushield.app_logger import AUDIT, get_logger
from edushield.auth.principal import Principal
from edushield.common.enums import Role
from edushield.common.errors import UnknownRoleError

audit_log = get_logger(AUDIT)
log = get_logger("auth.access")


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceKind(str, enum.Enum):
    STUDENT = "student"
    PERFORMANCE = "performance"
    FEE = "fee"
    GUARDIAN_ASSIGNMENT = "guardian_assignment"
    FACULTY_ASSIGNMENT = "faculty_assignment"


# Parents may look at these but never change them.
FINANCIAL_KINDS = frozenset({ResourceKind.FEE})


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


@dataclass(frozen=True)
class ResourceRef:
    kind: ResourceKind
    resource_id: Optional[uuid.UUID] = None
    # Student the resource belongs to (the student itself for kind=STUDENT).
    student_id: Optional[uuid.UUID] = None
    # Login account allowed self-access (Student.owner_user_id).
    owner_user_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class DenialRecord:
    actor_id: uuid.UUID
    role: Role
    resource_id: Optional[uuid.UUID]
    action: Action
    resource_kind: ResourceKind


class RelationshipGraph(Protocol):
    async def is_active_faculty_assignee(self, user_id: uuid.UUID, student_id: uuid.UUID) -> bool: ...

    async def is_active_guardian(self, user_id: uuid.UUID, student_id: uuid.UUID) -> bool: ...


AuditSink = Callable[[DenialRecord], None]
_Policy = Callable[["AccessResolver", Principal, ResourceRef, Action], Awaitable[bool]]


# ---------------------------------------------------------------------------
# Per-role policies
# ---------------------------------------------------------------------------

async def _allow_all(resolver: "AccessResolver", principal: Principal, resource: ResourceRef, action: Action) -> bool:
    return True


async def _student_policy(resolver: "AccessResolver", principal: Principal, resource: ResourceRef, action: Action) -> bool:
    return resource.owner_user_id is not None and resource.owner_user_id == principal.user_id


async def _faculty_policy(resolver: "AccessResolver", principal: Principal, resource: ResourceRef, action: Action) -> bool:
    # Faculty never delete, assigned or not.
    if action is Action.DELETE:
        return False
    if resource.student_id is None:
        return False
    return await resolver.graph.is_active_faculty_assignee(principal.user_id, resource.student_id)


async def _parent_policy(resolver: "AccessResolver", principal: Principal, resource: ResourceRef, action: Action) -> bool:
    if resource.kind in FINANCIAL_KINDS and action is not Action.READ:
        return False
    if resource.student_id is None:
        return False
    return await resolver.graph.is_active_guardian(principal.user_id, resource.student_id)


POLICIES: Dict[Role, _Policy] = {
    Role.ADMIN: _allow_all,
    Role.DEV_AUTH: _allow_all,
    Role.STUDENT: _student_policy,
    Role.FACULTY: _faculty_policy,
    Role.PARENT: _parent_policy,
}


class AccessResolver:
    """Stateless decision function over a read-only relationship graph."""

    def __init__(self, graph: RelationshipGraph, audit_sink: Optional[AuditSink] = None) -> None:
        self.graph = graph
        self._audit_sink = audit_sink

    async def authorize(self, principal: Principal, resource: ResourceRef, action: Action) -> Decision:
        if not isinstance(principal.role, Role):
            raise UnknownRoleError(principal.role)
        policy = POLICIES.get(principal.role)
        if policy is None:
            raise UnknownRoleError(principal.role)

        if await policy(self, principal, resource, action):
            return Decision.ALLOW

        self._record_denial(principal, resource, action)
        return Decision.DENY

    def _record_denial(self, principal: Principal, resource: ResourceRef, action: Action) -> None:
        record = DenialRecord(
            actor_id=principal.user_id,
            role=principal.role,
            resource_id=resource.resource_id,
            action=action,
            resource_kind=resource.kind,
        )
        audit_log.warning(
            "access denied: actor_id=%s role=%s resource_id=%s action=%s kind=%s",
            record.actor_id,
            record.role.value,
            record.resource_id,
            record.action.value,
            record.resource_kind.value,
        )
        if self._audit_sink is None:
            return
        try:
            self._audit_sink(record)
        except Exception:
            # The sink only observes; its failure must not turn a deny into an error.
            log.exception("audit sink failed for actor_id=%s", record.actor_id)


__all__ = [
    "Action",
    "ResourceKind",
    "Decision",
    "ResourceRef",
    "DenialRecord",
    "RelationshipGraph",
    "AccessResolver",
    "POLICIES",
]
