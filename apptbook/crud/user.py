# apptbook/crud/user.py
import hashlib
import hmac
import secrets
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from apptbook.core.errors import AuthorizationError, InvalidInputError, invalid_input_from
from apptbook.core.logging import get_logger
from apptbook.db.csvfile import CsvRecordFile
from apptbook.schemas.user import LEGACY_USER_FIELDS, USER_FIELDS, User, UserUpdate

logger = get_logger(__name__)

_HASH_SCHEME = "pbkdf2_sha256"
_HASH_ITERATIONS = 200_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _HASH_ITERATIONS)
    return f"{_HASH_SCHEME}${_HASH_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    if not stored.startswith(_HASH_SCHEME + "$"):
        # Rows written by the first version kept the password as-is
        return hmac.compare_digest(password.encode(), stored.encode())
    _, iterations, salt, expected = stored.split("$", 3)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


class UserDirectory:
    """Registered accounts. Users are never deleted and usernames never change."""

    def __init__(self, path: Path, quarantine_suffix: str = ".rejected"):
        self._file = CsvRecordFile(
            path,
            USER_FIELDS,
            parse=User.from_row,
            serialize=User.to_row,
            key=lambda u: u.username,
            quarantine_suffix=quarantine_suffix,
            legacy_fields=[LEGACY_USER_FIELDS],
        )

    def _users(self) -> dict[str, User]:
        return {u.username: u for u in self._file.load()}

    def get(self, username: str) -> Optional[User]:
        return self._users().get(username)

    def exists(self, username: str) -> bool:
        return username in self._users()

    def display_name(self, username: str) -> str:
        user = self.get(username)
        if user is None:
            raise InvalidInputError("Unknown user", user=username)
        return user.full_name

    def list_users(self, exclude: Optional[str] = None) -> Sequence[User]:
        return [u for u in self._users().values() if u.username != exclude]

    def register(
        self,
        username: str,
        password: str,
        confirm: str,
        full_name: str,
        profession: str = "",
        email: str = "",
        phone: str = "",
        timezone: str = "",
    ) -> User:
        users = self._users()
        if username in users:
            raise InvalidInputError("Username already exists", user=username)
        if not password:
            raise InvalidInputError("Password cannot be empty", user=username)
        if password != confirm:
            raise InvalidInputError("Passwords do not match", user=username)
        try:
            user = User(
                username=username,
                password=hash_password(password),
                full_name=full_name,
                profession=profession,
                email=email,
                phone=phone,
                timezone=timezone,
            )
        except ValidationError as e:
            raise invalid_input_from(e, user=username) from e

        self._file.persist(list(users.values()) + [user])
        logger.info("user_registered", user=username)
        return user

    def authenticate(self, username: str, password: str) -> User:
        user = self.get(username)
        if user is None or not verify_password(password, user.password):
            logger.warning("login_failed", user=username)
            raise AuthorizationError("Invalid credentials", user=username)
        return user

    def update_profile(self, username: str, changes: UserUpdate) -> User:
        users = self._users()
        current = users.get(username)
        if current is None:
            raise InvalidInputError("Unknown user", user=username)

        updated = current.model_copy(update=changes.model_dump(exclude_none=True))
        users[username] = updated
        self._file.persist(list(users.values()))
        logger.info("user_profile_updated", user=username,
                    fields=sorted(changes.model_dump(exclude_none=True)))
        return updated
