"""Login, registration and password reset against the monitoring service."""

from __future__ import annotations

import logging

from machine_monitor.api.client import ApiClient
from machine_monitor.errors import Ack, AuthError, MonitorError, Result, ValidationError
from machine_monitor.session import Session
from machine_monitor.validation import (
    ValidationResult,
    collect_errors,
    validate_confirm_password,
    validate_email,
    validate_password,
    validate_required_text,
)

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Invalid credentials"
REGISTER_FAILED = "Failed to create account"
RESET_FAILED = "Failed to send reset link"


def _invalid(results: dict[str, ValidationResult]) -> ValidationError | None:
    errors = collect_errors(results)
    if not errors:
        return None
    return ValidationError(next(iter(errors.values())), fields=errors)


class AuthClient:
    """
    Authentication operations.

    Input is validated locally first; a request the client already knows is
    invalid is never sent.
    """

    def __init__(self, api: ApiClient):
        self.api = api

    @property
    def session(self) -> Session:
        return self.api.session

    async def login(self, email: str, password: str) -> Result[Session]:
        error = _invalid({"email": validate_email(email), "password": validate_password(password)})
        if error:
            return Result.fail(error)

        try:
            body = await self.api.request(
                "POST",
                "/api/auth/login",
                json={"email": email, "password": password},
                protected=False,
                failure_message=LOGIN_FAILED,
            )
        except MonitorError as e:
            return Result.fail(e)

        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            return Result.fail(AuthError(LOGIN_FAILED))

        await self.session.begin(token)
        logger.info("Logged in as %s", email)
        result = Result.success(self.session)
        if self.session.storage_warning:
            result.warnings.append(self.session.storage_warning)
        return result

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        company: str | None = None,
        confirm_password: str | None = None,
    ) -> Result[Ack]:
        """Create an account. Success does not log in."""
        checks = {
            "name": validate_required_text(name),
            "email": validate_email(email),
            "password": validate_password(password),
        }
        if confirm_password is not None:
            checks["confirm_password"] = validate_confirm_password(confirm_password, password)
        error = _invalid(checks)
        if error:
            return Result.fail(error)

        payload = {"name": name, "email": email, "password": password}
        if company and company.strip():
            payload["company"] = company

        try:
            body = await self.api.request(
                "POST",
                "/api/auth/register",
                json=payload,
                protected=False,
                failure_message=REGISTER_FAILED,
            )
        except MonitorError as e:
            return Result.fail(e)
        return Result.success(Ack.from_body(body))

    async def request_password_reset(self, email: str) -> Result[Ack]:
        """Ask the service to email a reset link."""
        error = _invalid({"email": validate_email(email)})
        if error:
            return Result.fail(error)

        try:
            body = await self.api.request(
                "POST",
                "/api/auth/forgot-password",
                json={"email": email},
                protected=False,
                failure_message=RESET_FAILED,
            )
        except MonitorError as e:
            return Result.fail(e)
        return Result.success(Ack.from_body(body))

    async def logout(self) -> Result[None]:
        await self.session.end()
        result: Result[None] = Result.success()
        if self.session.storage_warning:
            result.warnings.append(self.session.storage_warning)
        return result
