# apptbook/schemas/user.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

USER_FIELDS = ["username", "password", "full_name", "profession", "email", "phone", "timezone"]
LEGACY_USER_FIELDS = USER_FIELDS[:4]


def _clean_name(v: str) -> str:
    # trim + collapse internal extra spaces
    v = " ".join(v.strip().split())
    if not v:
        raise ValueError("full_name cannot be empty")
    return v


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = Field(..., min_length=1)
    password: str
    full_name: str
    profession: str = ""
    email: str = ""
    phone: str = ""
    timezone: str = ""

    @field_validator("username")
    @classmethod
    def _check_username(cls, v: str) -> str:
        if not v or any(ch.isspace() for ch in v):
            raise ValueError("username must be non-empty without whitespace")
        return v

    @field_validator("full_name")
    @classmethod
    def _check_full_name(cls, v: str) -> str:
        return _clean_name(v)

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "User":
        return cls(
            username=row["username"],
            password=row["password"],
            full_name=row["full_name"],
            profession=row.get("profession") or "",
            email=row.get("email") or "",
            phone=row.get("phone") or "",
            timezone=row.get("timezone") or "",
        )

    def to_row(self) -> list[str]:
        return [self.username, self.password, self.full_name, self.profession,
                self.email, self.phone, self.timezone]


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    profession: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _check_full_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _clean_name(v)
