"""Static unit tables for dimensional and device unit handling."""

from __future__ import annotations

from typing import Any

DIMENSION_MASS = "mass"
DIMENSION_VOLUME = "volume"
DIMENSION_TIME = "time"
DIMENSION_COUNT = "count"
DIMENSION_ACTIVITY = "activity"

DIMENSIONS = (
    DIMENSION_MASS,
    DIMENSION_VOLUME,
    DIMENSION_TIME,
    DIMENSION_COUNT,
    DIMENSION_ACTIVITY,
)

# Base dimensions pint does not ship with. Count and activity units must never
# convert into each other or into anything dimensionless.
CUSTOM_PINT_DEFINITIONS = (
    "medication_item = [medication_count]",
    "medication_activity = [biologic_activity]",
)

# Reference pint unit per dimension class, used to classify parsed expressions.
DIMENSION_REFERENCE_UNITS = {
    DIMENSION_MASS: "gram",
    DIMENSION_VOLUME: "liter",
    DIMENSION_TIME: "second",
    DIMENSION_COUNT: "medication_item",
    DIMENSION_ACTIVITY: "medication_activity",
}

# (symbol, pint unit name, dimension, display name, aliases)
STANDARD_UNITS: tuple[tuple[str, str, str, str, tuple[str, ...]], ...] = (
    # Mass
    ("mcg", "microgram", DIMENSION_MASS, "microgram", ("ug", "µg", "microgram", "micrograms")),
    ("mg", "milligram", DIMENSION_MASS, "milligram", ("milligram", "milligrams")),
    ("g", "gram", DIMENSION_MASS, "gram", ("gm", "gram", "grams")),
    ("kg", "kilogram", DIMENSION_MASS, "kilogram", ("kilogram", "kilograms")),
    # Volume
    ("mL", "milliliter", DIMENSION_VOLUME, "milliliter", ("ml", "cc", "milliliter", "milliliters")),
    ("dL", "deciliter", DIMENSION_VOLUME, "deciliter", ("dl", "deciliter", "deciliters")),
    ("L", "liter", DIMENSION_VOLUME, "liter", ("l", "liter", "liters", "litre", "litres")),
    ("tsp", "teaspoon", DIMENSION_VOLUME, "teaspoon", ("[tsp_us]", "teaspoon", "teaspoons")),
    ("tbsp", "tablespoon", DIMENSION_VOLUME, "tablespoon", ("[tbs_us]", "tablespoon", "tablespoons")),
    # Time
    ("s", "second", DIMENSION_TIME, "second", ("sec", "second", "seconds")),
    ("min", "minute", DIMENSION_TIME, "minute", ("minute", "minutes")),
    ("h", "hour", DIMENSION_TIME, "hour", ("hr", "hour", "hours")),
    ("d", "day", DIMENSION_TIME, "day", ("day", "days")),
    ("wk", "week", DIMENSION_TIME, "week", ("week", "weeks")),
    # Count
    ("each", "medication_item", DIMENSION_COUNT, "each", ("ea", "{each}", "count")),
    # Biologic activity
    ("[iU]", "medication_activity", DIMENSION_ACTIVITY, "international unit", ("iu", "[IU]", "unit", "units")),
)

# Device units shipped with every adapter. ``conversion_ratio`` is the number of
# device units that make up one ``base_unit``.
DEFAULT_DEVICE_UNITS: tuple[dict[str, Any], ...] = (
    {
        "symbol": "click",
        "plural": "clicks",
        "base_unit": "mL",
        "conversion_ratio": 4.0,
        "granularity": 1.0,
        "metadata": {"dispenser": "Topiclick", "air_prime_loss": 4},
    },
    {
        "symbol": "drop",
        "plural": "drops",
        "base_unit": "mL",
        "conversion_ratio": 20.0,
        "granularity": 1.0,
        "aliases": ("gtt", "gtts"),
        "ratio_is_default": True,
        "metadata": {
            "dispenser": "Dropper",
            "note": "drop volume varies by dropper; 20 drops/mL is an assumption",
        },
    },
    {
        "symbol": "puff",
        "plural": "puffs",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 1.0,
        "aliases": ("actuation", "actuations", "spray", "sprays"),
        "requires_context": ("dose_per_actuation",),
    },
    {
        "symbol": "tablet",
        "plural": "tablets",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 0.25,
        "aliases": ("tab", "tabs", "{tbl}"),
        "requires_context": ("strength_ratio",),
    },
    {
        "symbol": "capsule",
        "plural": "capsules",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 1.0,
        "aliases": ("cap", "caps", "{capsule}"),
        "requires_context": ("strength_ratio",),
    },
    {
        "symbol": "patch",
        "plural": "patches",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 1.0,
        "requires_context": ("strength_ratio",),
    },
    {
        "symbol": "suppository",
        "plural": "suppositories",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 1.0,
        "requires_context": ("strength_ratio",),
    },
    {
        "symbol": "troche",
        "plural": "troches",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 0.5,
        "requires_context": ("strength_ratio",),
    },
    {
        "symbol": "application",
        "plural": "applications",
        "base_unit": "each",
        "conversion_ratio": 1.0,
        "granularity": 1.0,
        "requires_context": ("strength_ratio",),
    },
    {
        # Pump volume is dispenser specific; 1 pump/mL is only a placeholder.
        "symbol": "pump",
        "plural": "pumps",
        "base_unit": "mL",
        "conversion_ratio": 1.0,
        "granularity": 1.0,
        "ratio_is_default": True,
        "requires_context": ("dispenser",),
    },
)

# Unit strings a human should never see in prose ("1 {tbl}").
DISPLAY_UNIT_OVERRIDES = {
    "[iU]": "units",
    "{tbl}": "tablet",
    "{capsule}": "capsule",
}
