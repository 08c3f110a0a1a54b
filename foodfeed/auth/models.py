from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class AccountType(str, Enum):
    user = "user"
    business = "business"


class AuthUser(BaseModel):
    id: str
    name: str = ""
    email: str | None = None
    account_type: AccountType = AccountType.user
    access_token: str | None = None

    @property
    def is_business(self) -> bool:
        return self.account_type == AccountType.business

    def public(self) -> dict:
        """Session-safe view without the backend access token."""
        return self.model_dump(mode="json", exclude={"access_token"})


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
