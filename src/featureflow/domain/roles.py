"""
Role Registry and permission enforcement.

A read-only role may touch the handoff log and its own advisory notes only.
A read-write role may touch the targets it declares (all of them by default).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from featureflow.domain.exceptions import ConfigurationError, PermissionViolation
from featureflow.domain.models import (
    MutationTarget,
    ProposedUpdate,
    RoleDefinition,
    RoleId,
    StageId,
)

PERMISSION_VIOLATION = "PermissionViolation"

# Report order when several fields are violated at once
_TARGET_ORDER = (
    MutationTarget.ARTIFACT_REFS,
    MutationTarget.STAGE_STATUS,
    MutationTarget.ADVISORY,
)


@dataclass(frozen=True)
class Authorization:
    """Outcome of RoleRegistry.authorize: Accepted, or Rejected(reason)."""

    accepted: bool
    role_id: RoleId
    reason: str = ""
    field: str = ""

    @classmethod
    def accept(cls, role_id: RoleId) -> Authorization:
        return cls(accepted=True, role_id=role_id)

    @classmethod
    def reject(cls, role_id: RoleId, field: str) -> Authorization:
        return cls(
            accepted=False, role_id=role_id, reason=PERMISSION_VIOLATION, field=field
        )


class RoleRegistry:
    """Static table of executor roles, loaded once and never modified."""

    def __init__(self, roles: Iterable[RoleDefinition]):
        self._roles: dict[RoleId, RoleDefinition] = {}
        for role in roles:
            if role.role_id in self._roles:
                raise ConfigurationError(f"Duplicate role id: {role.role_id}")
            if role.read_only and role.targets - {MutationTarget.ADVISORY}:
                raise ConfigurationError(
                    f"Read-only role '{role.role_id}' cannot declare mutation targets "
                    f"{sorted(t.value for t in role.targets - {MutationTarget.ADVISORY})}"
                )
            self._roles[role.role_id] = role

    def __contains__(self, role_id: object) -> bool:
        return role_id in self._roles

    def __iter__(self) -> Iterator[RoleDefinition]:
        return iter(self._roles.values())

    def __len__(self) -> int:
        return len(self._roles)

    @property
    def role_ids(self) -> tuple[RoleId, ...]:
        return tuple(self._roles)

    def get(self, role_id: RoleId) -> RoleDefinition:
        if role_id not in self._roles:
            available = ", ".join(self._roles) or "(none)"
            raise KeyError(f"Role '{role_id}' not found. Available roles: {available}")
        return self._roles[role_id]

    def permitted_targets(self, role_id: RoleId) -> frozenset[MutationTarget]:
        role = self.get(role_id)
        if role.read_only:
            return frozenset({MutationTarget.ADVISORY})
        return role.targets or frozenset(MutationTarget)

    def authorize(self, role_id: RoleId, update: ProposedUpdate) -> Authorization:
        """
        Check a proposed update against the role's capability.

        Args:
            role_id: Role that produced the update
            update: The proposed changes

        Returns:
            Authorization; rejected with reason PermissionViolation and the
            first offending field when the role oversteps.
        """
        forbidden = update.touched_targets() - self.permitted_targets(role_id)
        for target in _TARGET_ORDER:
            if target in forbidden:
                return Authorization.reject(role_id, target.value)
        return Authorization.accept(role_id)

    def enforce(
        self, role_id: RoleId, update: ProposedUpdate, stage_id: StageId | None = None
    ) -> None:
        """
        Authorize or raise.

        Raises:
            PermissionViolation: If the update is rejected
        """
        result = self.authorize(role_id, update)
        if not result.accepted:
            raise PermissionViolation(role_id, result.field, stage_id)
