"""
Caller authorization context.

Identity and role resolution happen outside the billing system; what arrives
here is the RESULT, passed explicitly into every service operation.  There
is no ambient "current user".

Rules:
    - ``user_id is None``  -> UnauthorizedError
    - staff (role in the configured staff roles) may act on any customer
    - everyone else may only read/act on their own customer record
"""

from dataclasses import dataclass
from uuid import UUID

from billing_kernel.exceptions import ForbiddenError, UnauthorizedError

DEFAULT_STAFF_ROLES: frozenset[str] = frozenset({"owner", "admin", "instructor"})


@dataclass(frozen=True)
class AuthContext:
    """Resolved caller identity: a user id and a single role name."""

    user_id: UUID | None
    role: str | None = None
    staff_roles: frozenset[str] = DEFAULT_STAFF_ROLES

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_staff(self) -> bool:
        return self.is_authenticated and self.role in self.staff_roles

    def require_authenticated(self) -> UUID:
        if self.user_id is None:
            raise UnauthorizedError()
        return self.user_id

    def require_staff(self, action: str) -> UUID:
        """Return the caller id, or raise unless the caller is staff."""
        user_id = self.require_authenticated()
        if not self.is_staff:
            raise ForbiddenError(action)
        return user_id

    def require_staff_or_self(self, customer_id: UUID, action: str) -> UUID:
        """Staff may act for anyone; other callers only for themselves."""
        user_id = self.require_authenticated()
        if not self.is_staff and user_id != customer_id:
            raise ForbiddenError(action)
        return user_id

    def with_staff_roles(self, roles: frozenset[str]) -> "AuthContext":
        return AuthContext(user_id=self.user_id, role=self.role, staff_roles=frozenset(roles))
