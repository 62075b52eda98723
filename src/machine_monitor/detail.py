"""
Machine detail controller: sensor input form and risk prediction.

The prediction is always derived server-side from the latest persisted sensor
data, so every successful update is followed by a fresh prediction fetch.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

from pydantic import ValidationError as SchemaError

from machine_monitor.api.client import ApiClient
from machine_monitor.errors import Ack, MonitorError, Result, ServerError, ValidationError
from machine_monitor.schema import SENSOR_CHANNELS, Machine, Prediction

logger = logging.getLogger(__name__)

PREDICTION_FAILED = "Failed to fetch prediction"
UPDATE_FAILED = "Failed to update sensor data"
READING_REQUIRED = "Please provide at least one sensor value"
UNKNOWN_CHANNEL = "Unknown sensor channel"


class DetailState(str, Enum):
    """Lifecycle of the detail view."""

    LOADING = "loading"  # waiting for the first prediction
    READY = "ready"
    UPDATING = "updating"  # sensor update (and its prediction refetch) in flight


def parse_reading(text: str) -> float:
    """
    Parse one raw channel value.

    Empty, unparsable and non-finite input all read as 0, so a typo such as
    "12x" is submitted as 0.
    """
    try:
        value = float(text.strip())
    except (ValueError, AttributeError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def format_reading(value: float | None) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


class MachineDetailController:
    """
    Editable sensor form and latest prediction for one checked-out machine.

    Edits are sent to the service as a partial update; the local ``machine``
    is never patched with them.
    """

    def __init__(self, api: ApiClient, machine: Machine):
        self.api = api
        self.machine = machine
        self.fields: dict[str, str] = {
            key: format_reading(machine.sensor_data.channel(key)) for key in SENSOR_CHANNELS
        }
        self.prediction: Prediction | None = None
        self.state = DetailState.LOADING
        self.closed = False
        self._prediction_seq = 0
        self._submit_seq = 0

    async def open(self) -> Result[Prediction]:
        """Entry action: fetch the first prediction."""
        return await self.fetch_prediction()

    def set_field(self, name: str, text: str) -> None:
        if name not in self.fields:
            raise KeyError(f"Unknown sensor channel: {name}")
        self.fields[name] = text

    def parsed_fields(self) -> dict[str, float]:
        return {key: parse_reading(text) for key, text in self.fields.items()}

    async def fetch_prediction(self) -> Result[Prediction]:
        """Fetch the risk assessment and replace the current one wholesale."""
        self._prediction_seq += 1
        seq = self._prediction_seq

        try:
            body = await self.api.request(
                "GET",
                f"/api/machines/{self.machine.id}/predict",
                failure_message=PREDICTION_FAILED,
            )
            prediction = Prediction.model_validate(body)
        except MonitorError as e:
            self._finish_loading(seq)
            return Result.fail(e)
        except SchemaError:
            self._finish_loading(seq)
            return Result.fail(ServerError(PREDICTION_FAILED))

        if self._is_current(seq):
            self.prediction = prediction
        else:
            logger.debug("Discarding superseded prediction #%d for %s", seq, self.machine.id)
        self._finish_loading(seq)
        return Result.success(prediction)

    async def submit_sensor_data(self, raw_fields: dict[str, str] | None = None) -> Result[Ack]:
        """
        Send the form's readings, then refresh the prediction.

        ``raw_fields`` overrides individual channels before parsing; an unknown
        channel fails validation and leaves the form untouched. Requires at
        least one non-zero reading; otherwise nothing is sent.
        """
        raw_fields = raw_fields or {}
        unknown = {name: UNKNOWN_CHANNEL for name in raw_fields if name not in self.fields}
        if unknown:
            return Result.fail(ValidationError(UNKNOWN_CHANNEL, fields=unknown))
        for name, text in raw_fields.items():
            self.set_field(name, text)

        values = self.parsed_fields()
        if all(v == 0 for v in values.values()):
            return Result.fail(ValidationError(READING_REQUIRED))

        self._submit_seq += 1
        seq = self._submit_seq
        self.state = DetailState.UPDATING
        try:
            try:
                body = await self.api.request(
                    "PUT",
                    f"/api/machines/{self.machine.id}",
                    json={"sensorData": values},
                    failure_message=UPDATE_FAILED,
                )
            except MonitorError as e:
                return Result.fail(e)

            result = Result.success(Ack.from_body(body))
            if self.closed:
                return result
            refreshed = await self.fetch_prediction()
            if not refreshed.ok:
                result.warnings.append(refreshed.message)
            return result
        finally:
            # An older submit finishing must not end a newer one's UPDATING.
            if not self.closed and seq == self._submit_seq:
                self.state = DetailState.READY

    def _is_current(self, seq: int) -> bool:
        return not self.closed and seq == self._prediction_seq

    def _finish_loading(self, seq: int) -> None:
        if self._is_current(seq) and self.state == DetailState.LOADING:
            self.state = DetailState.READY

    def close(self) -> None:
        """Tear down; results of requests still in flight are discarded."""
        self.closed = True
