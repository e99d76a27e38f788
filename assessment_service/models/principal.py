from __future__ import annotations

from dataclasses import dataclass

# Roles allowed to see every learner's attempts and scores.
STAFF_ROLES = frozenset({"admin", "instructor"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity taken from a validated bearer token.

    user_id is the token subject and is the same string stored on
    Attempt.user_id; roles come from the token's `roles` claim.
    """

    user_id: str
    roles: frozenset[str]

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)

    def is_staff(self) -> bool:
        return self.has_any_role(STAFF_ROLES)
