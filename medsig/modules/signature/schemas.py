"""Signature output schemas."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

StrengthMode = Literal["ratio", "quantity"]


class SignatureResult(BaseModel):
    """Human readable instruction plus its FHIR R4 ``Dosage`` representation."""

    human_readable: str = Field(alias="humanReadable")
    fhir_representation: dict[str, Any] = Field(alias="fhirRepresentation")
    template_variables: dict[str, Any] | None = Field(default=None, alias="templateVariables")

    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True)
class DoseValidation:
    valid: bool
    message: str | None = None
