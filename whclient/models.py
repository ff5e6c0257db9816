from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: Any = None
    message: Optional[str] = None
    needs_login: bool = Field(default=False, alias="needsLogin")

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str, needs_login: bool = False, data: Any = None) -> "ApiResponse":
        return cls(success=False, message=message, needs_login=needs_login, data=data)

    @classmethod
    def not_authenticated(cls) -> "ApiResponse":
        return cls.fail("Not authenticated", needs_login=True)

    @classmethod
    def session_expired(cls) -> "ApiResponse":
        return cls.fail("Session expired", needs_login=True)


class Session(BaseModel):
    access_token: str
    refresh_token: str


class UserData(BaseModel):
    user_name: str
    email: Optional[str] = None
    user_id: Optional[str] = None


class Currency(BaseModel):
    code: str
    name: str
    symbol: str


class SavedWalletInfo(BaseModel):
    id: str
    currency_info: Currency


class UserSettings(BaseModel):
    has_pin: bool = False
    biometric_enabled: bool = False
    language: str = "english"
