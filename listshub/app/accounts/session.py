"""Loading the signed-in user for a request."""
from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from .models import UserAccount

logger = logging.getLogger("accounts")

SessionDiagnostics = Callable[[UserAccount], None]


class UserLookup(Protocol):
    def find_user(self, user_id: str) -> Optional[UserAccount]:
        ...


def bootstrap_session(
    repository: UserLookup,
    user_id: str,
    *,
    diagnostics: Optional[SessionDiagnostics] = None,
) -> Optional[UserAccount]:
    """Load the session user.

    ``diagnostics`` receives the loaded account and is meant for tests and
    local debugging. Nothing is recorded when it is omitted.
    """

    user = repository.find_user(user_id)
    if user is None:
        logger.info("Session references unknown user %s", user_id)
        return None
    if diagnostics is not None:
        diagnostics(user)
    return user
