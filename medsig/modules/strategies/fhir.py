"""FHIR R4 Dosage fragments built by the strategies."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from medsig.modules.medication.schemas import Amount, MaxDosePerPeriod
from medsig.modules.routes.constants import Route

SNOMED = "http://snomed.info/sct"
UCUM = "http://unitsofmeasure.org"
DOSE_RATE_TYPE = "http://terminology.hl7.org/CodeSystem/dose-rate-type"

# Daily schedules shared by the solid and topical strategies.
DAILY_TIMING: dict[str, dict[str, Any]] = {
    "once daily": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "d", "when": ["MORN"]}},
    "twice daily": {
        "repeat": {"frequency": 2, "period": 1, "periodUnit": "d", "when": ["MORN", "EVE"]}
    },
    "three times daily": {
        "repeat": {"frequency": 3, "period": 1, "periodUnit": "d", "when": ["MORN", "AFT", "EVE"]}
    },
    "four times daily": {
        "repeat": {
            "frequency": 4,
            "period": 1,
            "periodUnit": "d",
            "when": ["MORN", "NOON", "AFT", "EVE"],
        }
    },
    "at bedtime": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "d", "when": ["HS"]}},
    "every morning": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "d", "when": ["MORN"]}},
}

INTERVAL_TIMING: dict[str, dict[str, Any]] = {
    "every 4 hours": {"repeat": {"frequency": 1, "period": 4, "periodUnit": "h"}},
    "every 6 hours": {"repeat": {"frequency": 1, "period": 6, "periodUnit": "h"}},
    "every 8 hours": {"repeat": {"frequency": 1, "period": 8, "periodUnit": "h"}},
    "every 12 hours": {"repeat": {"frequency": 1, "period": 12, "periodUnit": "h"}},
    "every 4 hours while awake": {
        "repeat": {"frequency": 5, "period": 1, "periodUnit": "d", "when": ["MORN", "AFT", "EVE"]}
    },
}

INJECTION_TIMING: dict[str, dict[str, Any]] = {
    "once weekly": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "wk"}},
    "every week": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "wk"}},
    "every 2 weeks": {"repeat": {"frequency": 1, "period": 2, "periodUnit": "wk"}},
    "every other week": {"repeat": {"frequency": 1, "period": 2, "periodUnit": "wk"}},
    "once monthly": {"repeat": {"frequency": 1, "period": 1, "periodUnit": "mo"}},
}

UCUM_CODES = {
    "tablet": "{tbl}",
    "tablets": "{tbl}",
    "capsule": "{capsule}",
    "capsules": "{capsule}",
    "mcg": "ug",
    "ml": "mL",
    "tsp": "[tsp_us]",
    "tbsp": "[tbs_us]",
    "unit": "[iU]",
    "units": "[iU]",
    "click": "{click}",
    "clicks": "{click}",
    "drop": "[drp]",
    "drops": "[drp]",
    "puff": "{puff}",
    "puffs": "{puff}",
}


def timing(frequency: str, *tables: Mapping[str, dict[str, Any]]) -> dict[str, Any] | None:
    """FHIR ``Timing`` for a frequency phrase; unknown phrases are carried as code text."""
    phrase = frequency.strip()
    if not phrase:
        return None
    key = phrase.casefold()
    for table in tables:
        if key in table:
            return copy.deepcopy(table[key])
    return {"code": {"text": phrase}}


def coding(system: str, code: str, display: str) -> dict[str, Any]:
    return {"coding": [{"system": system, "code": code, "display": display}]}


def route_concept(route: Route | None, fallback: str = "") -> dict[str, Any] | None:
    if route is None:
        return {"text": fallback} if fallback else None
    return coding(SNOMED, route.snomed_code, route.name)


def ucum_code(unit: str) -> str:
    return UCUM_CODES.get(unit.casefold(), unit)


def quantity(amount: Amount) -> dict[str, Any]:
    return {
        "value": amount.value,
        "unit": amount.unit,
        "system": UCUM,
        "code": ucum_code(amount.unit),
    }


def dose_and_rate(amount: Amount | None) -> list[dict[str, Any]] | None:
    if amount is None:
        return None
    return [
        {
            "type": coding(DOSE_RATE_TYPE, "ordered", "Ordered"),
            "doseQuantity": quantity(amount),
        }
    ]


def max_dose_per_period(limit: MaxDosePerPeriod | None) -> dict[str, Any] | None:
    if limit is None:
        return None
    return {"numerator": quantity(limit.dose), "denominator": quantity(limit.period)}
