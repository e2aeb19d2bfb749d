"""Caller identity passed explicitly from routers to services."""

from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    ACCOUNTANT = "accountant"
    DAF = "daf"
    DG = "dg"
    ADMIN = "admin"


@dataclass(frozen=True)
class RequestContext:
    user_id: int
    role: UserRole = UserRole.ACCOUNTANT

    def has_role(self, *roles: UserRole) -> bool:
        return self.role == UserRole.ADMIN or self.role in roles
