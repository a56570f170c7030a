"""Permission resolution for Gatekeeper.

Combines role assignments with per-user overrides:

1. an override with ``granted=False`` denies (revoke always wins),
2. an override with ``granted=True`` allows (grant always wins),
3. otherwise the user's role decides.

Unknown users, unknown permissions and users without a role resolve to DENY.
Resolver methods never raise: a storage failure denies the affected check and
is logged at ERROR as a failed check, separate from policy denials.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Sequence
from uuid import UUID

from gatekeeper.common.logger import OUTCOME_CHECK_FAILED

from .store import RBACStore

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    def __bool__(self) -> bool:
        # The str mixin would make "deny" truthy
        return self is Decision.ALLOW


def decide(override: Optional[bool], role_grants: bool) -> Decision:
    """Apply override/role precedence to the two stored facts."""
    if override is False:
        return Decision.DENY
    if override is True:
        return Decision.ALLOW
    return Decision.ALLOW if role_grants else Decision.DENY


@dataclass(frozen=True)
class Resolution:
    """Outcome of a check.

    ``failed`` is True when the decision is DENY because storage could not
    be read, rather than because policy says no.
    """
    decision: Decision
    failed: bool = False

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW

    def __bool__(self) -> bool:
        return self.allowed


class PermissionResolver:
    """Computes allow/deny decisions from the current stored state.

    Holds no state between calls besides the injected store, so one instance
    may serve any number of users for the lifetime of its session.
    """

    def __init__(self, store: RBACStore):
        self.store = store

    def _check(self, user_id: UUID, permission_name: str) -> Resolution:
        try:
            override, role_grants = self.store.read_decision_inputs(user_id, permission_name)
        except Exception:
            logger.exception(
                "Permission check failed, denying: user_id=%s permission=%s",
                user_id,
                permission_name,
                extra={"outcome": OUTCOME_CHECK_FAILED},
            )
            self.reset_session()
            return Resolution(Decision.DENY, failed=True)

        decision = decide(override, role_grants)
        logger.debug(
            "Resolved %s for user_id=%s: %s (override=%s, role_grants=%s)",
            permission_name, user_id, decision.value, override, role_grants,
        )
        return Resolution(decision)

    def reset_session(self) -> None:
        # A failed statement can leave the transaction aborted; later checks need a clean one.
        try:
            self.store.db.rollback()
        except Exception:
            logger.exception("Rollback after failed permission check also failed")

    def resolve(self, user_id: UUID, permission_name: str) -> Decision:
        """Decide whether the user holds one permission."""
        return self._check(user_id, permission_name).decision

    def resolve_any(self, user_id: UUID, permission_names: Iterable[str]) -> bool:
        """True if the user holds at least one of the permissions."""
        return self.evaluate(user_id, permission_names, require_all=False).allowed

    def resolve_all(self, user_id: UUID, permission_names: Iterable[str]) -> bool:
        """True if the user holds every one of the permissions."""
        return self.evaluate(user_id, permission_names, require_all=True).allowed

    def evaluate(
        self,
        user_id: UUID,
        permission_names: Iterable[str],
        *,
        require_all: bool = False,
    ) -> Resolution:
        """Resolve each name independently and combine with AND or OR.

        A failure on one name only denies that name. The combined result is
        marked failed only when it is a DENY and some sub-check failed.
        """
        results: Sequence[Resolution] = [
            self._check(user_id, name) for name in permission_names
        ]
        if require_all:
            allowed = all(r.allowed for r in results)
        else:
            allowed = any(r.allowed for r in results)

        if allowed:
            return Resolution(Decision.ALLOW)
        return Resolution(Decision.DENY, failed=any(r.failed for r in results))

    def effective_permission_set(self, user_id: UUID) -> FrozenSet[str]:
        """Every permission name for which ``resolve`` would return ALLOW.

        Returns an empty set if storage cannot be read.
        """
        try:
            rows = self.store.get_permission_rows(user_id)
        except Exception:
            logger.exception(
                "Loading effective permissions failed: user_id=%s", user_id,
                extra={"outcome": OUTCOME_CHECK_FAILED},
            )
            self.reset_session()
            return frozenset()

        names = {row.name for row in rows if row.source == "role"}
        for row in rows:
            if row.source != "override":
                continue
            if row.granted:
                names.add(row.name)
            else:
                names.discard(row.name)
        return frozenset(names)
