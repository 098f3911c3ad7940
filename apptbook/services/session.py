# apptbook/services/session.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from apptbook.core.logging import bind_actor, clear_context, get_logger
from apptbook.crud.user import UserDirectory

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserSession:
    """The logged-in user, passed explicitly to every operation that needs an actor."""
    username: str
    display_name: str
    profession: str = ""
    logged_in_at: datetime = field(default_factory=datetime.now)


def login(users: UserDirectory, username: str, password: str) -> UserSession:
    user = users.authenticate(username, password)
    bind_actor(user.username)
    logger.info("session_started")
    return UserSession(username=user.username, display_name=user.full_name,
                       profession=user.profession)


def logout(session: UserSession) -> None:
    logger.info("session_ended", duration_s=round((datetime.now() - session.logged_in_at).total_seconds()))
    clear_context()
