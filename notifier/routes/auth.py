from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from notifier.dependencies import get_services
from notifier.schemas.auth import (
    ForgotPasswordRequest,
    PasswordResetResponse,
    ResetPasswordRequest,
)
from notifier.services import Services
from notifier.services.password_reset import TokenAlreadyUsedError

logger = structlog.get_logger(__name__)

auth_router = APIRouter(prefix="/api", tags=["auth"])

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request."
INVALID_TOKEN_MESSAGE = (
    "Invalid or expired token. Please request a new password reset link."
)


def failure(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, **extra},
    )


def summarize_errors(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "body",
            "message": err["msg"],
        }
        for err in error.errors()
    ]


@auth_router.post("/forgot-password", response_model=PasswordResetResponse)
async def forgot_password(
    data: dict[str, Any] = Body(...),
    services: Services = Depends(get_services),
):
    try:
        request = ForgotPasswordRequest.model_validate(data)
    except ValidationError:
        return failure(status.HTTP_400_BAD_REQUEST, "Invalid email format")

    try:
        async with services.session_factory() as db:
            await services.password_reset.forgot_password(db, request.username)
    except Exception as e:
        logger.error("Error in forgot password", error=str(e))
        return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)

    return PasswordResetResponse(
        success=True,
        message="If an account with this email exists, a password reset link has been sent.",
    )


@auth_router.post("/reset-password", response_model=PasswordResetResponse)
async def reset_password(
    data: dict[str, Any] = Body(...),
    services: Services = Depends(get_services),
):
    try:
        request = ResetPasswordRequest.model_validate(data)
    except ValidationError as e:
        return failure(
            status.HTTP_400_BAD_REQUEST,
            "Invalid reset request",
            errors=summarize_errors(e),
        )

    try:
        async with services.session_factory() as db:
            reset = await services.password_reset.reset_password(
                db, request.token, request.new_password
            )
    except TokenAlreadyUsedError:
        reset = False
    except Exception as e:
        logger.error("Error in reset password", error=str(e))
        return failure(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)

    if not reset:
        return failure(status.HTTP_400_BAD_REQUEST, INVALID_TOKEN_MESSAGE)

    return PasswordResetResponse(
        success=True,
        message="Password has been reset successfully. You can now log in with your new password.",
    )
