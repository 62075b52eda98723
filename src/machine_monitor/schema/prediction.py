"""Risk assessment returned by the prediction endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Prediction(BaseModel):
    """
    Opaque result of the remote predictive model.

    Replaced wholesale on every fetch; nothing is merged or recomputed locally.
    """

    risk_level: str = Field(alias="riskLevel")
    risk_probability: float = Field(alias="riskProbability")  # percent, 0-100
    critical_parameters: list[str] = Field(default_factory=list, alias="criticalParameters")
    recommendations: list[str] = Field(default_factory=list, alias="recommendations")

    model_config = {"populate_by_name": True, "extra": "ignore", "frozen": True}

    @property
    def critical_summary(self) -> str:
        return ", ".join(self.critical_parameters) if self.critical_parameters else "None"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
