"""Maps operation outcomes to the title and text the view displays."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from machine_monitor.api.client import CONNECTION_MESSAGE
from machine_monitor.errors import FailureKind, Result


class Operation(str, Enum):
    LOGIN = "login"
    REGISTER = "register"
    RESET_PASSWORD = "reset_password"
    LOGOUT = "logout"
    FETCH_MACHINES = "fetch_machines"
    ADD_MACHINE = "add_machine"
    DELETE_MACHINE = "delete_machine"
    UPDATE_SENSORS = "update_sensors"
    FETCH_PREDICTION = "fetch_prediction"


@dataclass(frozen=True)
class Message:
    title: str
    text: str


AUTH_TITLES = {
    Operation.LOGIN: "Login Failed",
    Operation.REGISTER: "Registration Failed",
}

SUCCESS_MESSAGES = {
    Operation.LOGIN: Message("Success", "Logged in successfully"),
    Operation.REGISTER: Message(
        "Registration Successful",
        "Your account has been created successfully. Please login to continue.",
    ),
    Operation.RESET_PASSWORD: Message("Success", "A password reset link has been sent to your email."),
    Operation.LOGOUT: Message("Success", "Logged out"),
    Operation.ADD_MACHINE: Message("Success", "Machine added successfully"),
    Operation.DELETE_MACHINE: Message("Success", "Machine deleted successfully"),
    Operation.UPDATE_SENSORS: Message("Success", "Sensor data updated successfully"),
}


class ErrorPresenter:
    """Turns a failed ``Result`` into a user-facing message; never inspects payloads."""

    def failure(self, operation: Operation, result: Result) -> Message:
        if result.ok:
            raise ValueError("Cannot present a successful result as a failure")

        kind = result.kind
        if kind == FailureKind.CONNECTION:
            return Message("Connection Error", result.message or CONNECTION_MESSAGE)
        if kind == FailureKind.VALIDATION:
            return Message("Invalid input", result.message or "")
        if kind == FailureKind.AUTH:
            return Message(AUTH_TITLES.get(operation, "Error"), result.message or "")
        if kind == FailureKind.STORAGE:
            return Message("Warning", result.message or "")
        return Message("Error", result.message or "")

    def success(self, operation: Operation) -> Message | None:
        return SUCCESS_MESSAGES.get(operation)

    def warnings(self, result: Result) -> list[Message]:
        return [Message("Warning", w) for w in result.warnings]
