import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ForgotPasswordRequest(BaseModel):
    username: str

    @field_validator("username")
    @classmethod
    def username_must_be_email(cls, v):
        if not EMAIL_PATTERN.match(v):
            raise ValueError("username must be an email address")
        return v


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    new_password: str = Field(alias="newPassword", min_length=8, max_length=72)
    confirm_password: str = Field(alias="confirmPassword")

    @model_validator(mode="after")
    def passwords_must_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class PasswordResetResponse(BaseModel):
    success: bool
    message: str
