"""Pydantic schemas for telemetry API responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TelemetryResponse(BaseModel):
    """Body of a successful /device/real/query call.

    Records are passed through as-is; only the envelope is validated.
    """

    model_config = ConfigDict(extra="ignore")

    data: list[Any] = Field(..., description="Telemetry records in server order")
