"""Request bodies for the auth endpoints, validated before any side effect."""
from __future__ import annotations

from typing import Annotated, Any, Optional, Type, TypeVar

import pydantic
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StrictBool, model_validator

from cms_auth.errors import ValidationError

EMAIL_MAX_LENGTH = 200
# Codes may be any configured OTP_LENGTH up to this.
OTP_CODE_MAX_LENGTH = 64

Schema = TypeVar("Schema", bound=BaseModel)


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def _check_email_length(value: str) -> str:
    if len(value) > EMAIL_MAX_LENGTH:
        raise ValueError(f"email must be at most {EMAIL_MAX_LENGTH} characters")
    return value


def _normalize_code(value: str) -> str:
    return value.upper()


Email = Annotated[EmailStr, AfterValidator(_check_email_length)]
OtpCode = Annotated[str, Field(min_length=1, max_length=OTP_CODE_MAX_LENGTH), AfterValidator(_normalize_code)]


class RegisterRequest(_Body):
    username: str = Field(min_length=2, max_length=100)
    email: Email
    password: str = Field(min_length=6)


class CreateUserRequest(RegisterRequest):
    is_admin: StrictBool = Field(alias="isAdmin")


class LoginRequest(_Body):
    username: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[Email] = None
    password: str = Field(min_length=6)

    @model_validator(mode="after")
    def ensure_identifier(self) -> "LoginRequest":
        if not self.username and not self.email:
            raise ValueError("username or email is required")
        return self


class OtpCheckoutRequest(_Body):
    email: Email
    otp_code: OtpCode = Field(alias="otpCode")


class UpdateEmailRequest(_Body):
    email: Email
    otp_code: OtpCode = Field(alias="otpCode")


class UpdatePasswordRequest(_Body):
    current_password: str = Field(alias="currentPassword", min_length=6)
    new_password: str = Field(alias="newPassword", min_length=6)


class UpdateUserRequest(_Body):
    is_admin: StrictBool = Field(alias="isAdmin")


def validate(schema: Type[Schema], data: Any) -> Schema:
    """Parse ``data`` into ``schema`` or raise the 400 ValidationError."""
    if isinstance(data, schema):
        return data
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return schema.model_validate(data)
    except pydantic.ValidationError as exc:
        fields = []
        for error in exc.errors():
            name = ".".join(str(part) for part in error["loc"]) or "body"
            fields.append({name: error["msg"]})
        raise ValidationError(fields=fields) from exc
