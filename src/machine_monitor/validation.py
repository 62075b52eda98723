"""
Field-level validation for the authentication forms.

The ``validate_*`` functions are pure. ``FormField`` layers the display rule on
top: a field shows no error until it has failed validation at least once, and
from then on it is re-validated on every edit.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single field."""

    valid: bool
    message: str = ""

    @classmethod
    def passed(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def failed(cls, message: str) -> ValidationResult:
        return cls(valid=False, message=message)


def validate_email(value: str) -> ValidationResult:
    if not value:
        return ValidationResult.failed("Email is required")
    if not EMAIL_PATTERN.match(value):
        return ValidationResult.failed("Please enter a valid email address")
    return ValidationResult.passed()


def validate_password(value: str) -> ValidationResult:
    if not value:
        return ValidationResult.failed("Password is required")
    if len(value) < MIN_PASSWORD_LENGTH:
        return ValidationResult.failed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return ValidationResult.passed()


def validate_confirm_password(value: str, password: str) -> ValidationResult:
    if not value:
        return ValidationResult.failed("Please confirm your password")
    if value != password:
        return ValidationResult.failed("Passwords do not match")
    return ValidationResult.passed()


def validate_required_text(value: str, label: str = "Name") -> ValidationResult:
    if not value or not value.strip():
        return ValidationResult.failed(f"{label} is required")
    return ValidationResult.passed()


def collect_errors(results: dict[str, ValidationResult]) -> dict[str, str]:
    """Map field name to message for every failed result."""
    return {name: r.message for name, r in results.items() if not r.valid}


class FormField:
    """
    An editable form value with its currently displayed error.

    ``set_value`` only re-validates once the field is showing an error, so the
    operator never sees a complaint on the first keystroke.
    """

    def __init__(self, validator: Callable[[str], ValidationResult] | None = None, value: str = ""):
        self.value = value
        self.error = ""
        self._validator = validator

    @property
    def has_error(self) -> bool:
        return bool(self.error)

    def set_value(self, value: str) -> None:
        self.value = value
        if self.error:
            self.validate()

    def validate(self) -> bool:
        if self._validator is None:
            return True
        result = self._validator(self.value)
        self.error = result.message if not result.valid else ""
        return result.valid


class _Form:
    """Named collection of fields."""

    def __init__(self, **fields: FormField):
        self.fields = fields

    def __getitem__(self, name: str) -> FormField:
        return self.fields[name]

    def set_value(self, name: str, value: str) -> None:
        self.fields[name].set_value(value)

    def value(self, name: str) -> str:
        return self.fields[name].value

    def validate_all(self) -> bool:
        # Every field is validated so all errors surface at once.
        outcomes = [f.validate() for f in self.fields.values()]
        return all(outcomes)

    def errors(self) -> dict[str, str]:
        return {name: f.error for name, f in self.fields.items() if f.error}


class LoginForm(_Form):
    def __init__(self) -> None:
        super().__init__(
            email=FormField(validate_email),
            password=FormField(validate_password),
        )


class PasswordResetForm(_Form):
    def __init__(self) -> None:
        super().__init__(email=FormField(validate_email))


class RegistrationForm(_Form):
    """Registration form; the confirmation tracks edits to the password."""

    def __init__(self) -> None:
        super().__init__(
            name=FormField(validate_required_text),
            email=FormField(validate_email),
            company=FormField(),
            password=FormField(validate_password),
            confirm_password=FormField(
                lambda value: validate_confirm_password(value, self.value("password"))
            ),
        )

    def set_value(self, name: str, value: str) -> None:
        super().set_value(name, value)
        confirm = self.fields["confirm_password"]
        if name == "password" and confirm.has_error and confirm.value:
            confirm.validate()
