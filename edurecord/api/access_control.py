"""
Role-based access control for academic record operations.

Teachers and administrators write records, only administrators fail or delete
an enrollment outright, and every role may read.
"""

from typing import Dict, FrozenSet, List

from ..core.enums import RecordOperation, UserRole
from ..core.exceptions import AuthenticationError, AuthorizationError
from ..core.interfaces import AccessControl

_TEACHER_OPERATIONS = frozenset({
    RecordOperation.ENROLL,
    RecordOperation.RECORD_GRADE,
    RecordOperation.REPLACE_GRADE,
    RecordOperation.RECORD_ATTENDANCE,
    RecordOperation.FINALIZE,
    RecordOperation.WITHDRAW,
    RecordOperation.REGISTER_COURSE,
    RecordOperation.READ,
})

DEFAULT_PERMISSIONS: Dict[UserRole, FrozenSet[RecordOperation]] = {
    UserRole.ADMIN: frozenset(RecordOperation),
    UserRole.TEACHER: _TEACHER_OPERATIONS,
    UserRole.STUDENT: frozenset({RecordOperation.READ}),
}


def parse_role(value) -> UserRole:
    """Resolve a caller-supplied role name, case-insensitively."""
    if isinstance(value, UserRole):
        return value
    if not value:
        raise AuthenticationError("Missing caller role")
    try:
        return UserRole(str(value).strip().lower())
    except ValueError:
        raise AuthenticationError(f"Unknown role: {value}", details={'role': value}) from None


class RoleAccessControl(AccessControl):
    """Static role to operation mapping."""

    def __init__(self, permissions: Dict[UserRole, FrozenSet[RecordOperation]] = None):
        self._permissions = dict(DEFAULT_PERMISSIONS if permissions is None else permissions)

    def check_access(self, role: UserRole, operation: RecordOperation) -> bool:
        return operation in self._permissions.get(role, frozenset())

    def get_permissions(self, role: UserRole) -> List[RecordOperation]:
        return sorted(self._permissions.get(role, frozenset()), key=lambda op: op.value)

    def require(self, role: UserRole, operation: RecordOperation) -> None:
        """Raise AuthorizationError unless the role may perform the operation."""
        if not self.check_access(role, operation):
            raise AuthorizationError(
                f"Role {role.value} may not {operation.value.replace('_', ' ')}",
                details={'role': role.value, 'operation': operation.value}
            )
