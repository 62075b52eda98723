"""
Machine Monitor client core.

Session handling and resource synchronization for a predictive-maintenance
service: authentication, the machine roster, and per-machine sensor updates
with their risk predictions.

Quick Start:
    from machine_monitor import ApiClient, AuthClient, MachineRosterController, Session, SessionStore

    session = Session(SessionStore("~/.machine_monitor/session.db"))
    await session.restore()

    async with ApiClient(session) as api:
        await AuthClient(api).login("operator@example.com", "secret1")

        roster = MachineRosterController(api)
        await roster.fetch_all()
        print(roster.total_count, roster.active_count)
"""

__version__ = "0.1.0"

from machine_monitor.api.client import ApiClient
from machine_monitor.auth.client import AuthClient
from machine_monitor.config import Settings
from machine_monitor.detail import DetailState, MachineDetailController
from machine_monitor.errors import (
    Ack,
    AuthError,
    ConnectionError,
    FailureKind,
    MonitorError,
    Result,
    ServerError,
    StorageUnavailable,
    ValidationError,
)
from machine_monitor.presenter import ErrorPresenter, Message, Operation
from machine_monitor.roster import MachineRosterController, PendingRemoval
from machine_monitor.schema import Machine, MachineStatus, Prediction, SensorReading
from machine_monitor.session import MemorySessionStore, Session, SessionStore

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    # Session
    "Session",
    "SessionStore",
    "MemorySessionStore",
    # Clients and controllers
    "ApiClient",
    "AuthClient",
    "MachineRosterController",
    "PendingRemoval",
    "MachineDetailController",
    "DetailState",
    # Schema
    "Machine",
    "MachineStatus",
    "SensorReading",
    "Prediction",
    # Results and failures
    "Result",
    "Ack",
    "FailureKind",
    "MonitorError",
    "ValidationError",
    "AuthError",
    "ConnectionError",
    "ServerError",
    "StorageUnavailable",
    # Presentation
    "ErrorPresenter",
    "Message",
    "Operation",
]
