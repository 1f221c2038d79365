"""Locale -> template key -> jinja2 template source.

General templates take pre-formatted clause slots (``specialInstructions`` is
``" with food"`` or absent). Specialised templates take raw values and build
their clauses with ``{% if %}`` blocks and the ``plural`` filter.
"""

from __future__ import annotations

import copy
from enum import Enum


class TemplateKey(str, Enum):
    ORAL_TABLET = "ORAL_TABLET_TEMPLATE"
    LIQUID_DOSE = "LIQUID_DOSE_TEMPLATE"
    TOPICAL_APPLICATION = "TOPICAL_APPLICATION_TEMPLATE"
    INJECTION = "INJECTION_TEMPLATE"
    PRN_INSTRUCTION = "PRN_INSTRUCTION_TEMPLATE"
    DEFAULT = "DEFAULT_TEMPLATE"
    TESTOSTERONE_INJECTION = "TESTOSTERONE_INJECTION_TEMPLATE"
    TOPICLICK_APPLICATION = "TOPICLICK_APPLICATION_TEMPLATE"
    COMPOUNDED_MEDICATION = "COMPOUNDED_MEDICATION_TEMPLATE"
    INSULIN_INJECTION = "INSULIN_INJECTION_TEMPLATE"
    INHALER = "INHALER_TEMPLATE"
    DROPS = "DROPS_TEMPLATE"


DEFAULT_LOCALE = "en-US"

_GENERAL_EN = {
    TemplateKey.ORAL_TABLET.value: (
        "{{ verb }} {{ doseText }} {{ route }} {{ frequency }}{{ specialInstructions }}."
    ),
    TemplateKey.LIQUID_DOSE.value: (
        "{{ verb }} {{ doseValue | number }} {{ doseUnit }}{{ dualDose }} {{ route }} "
        "{{ frequency }}{{ specialInstructions }}."
    ),
    TemplateKey.TOPICAL_APPLICATION.value: (
        "{{ verb }} {{ doseText }} {{ route }}{{ site }} {{ frequency }}{{ specialInstructions }}."
    ),
    TemplateKey.INJECTION.value: (
        "{{ verb }} {{ doseValue | number }} {{ doseUnit }}{{ dualDose }} {{ route }}{{ site }} "
        "{{ frequency }}{{ technique }}."
    ),
    TemplateKey.PRN_INSTRUCTION.value: (
        "{{ verb }} {{ doseText }} {{ route }} {{ frequencyText }} as needed"
        "{{ indication }}{{ maxDose }}."
    ),
    TemplateKey.DEFAULT.value: (
        "{{ verb }} {{ doseText }} {{ route }} {{ frequency }}{{ specialInstructions }}."
    ),
}

# Slots arrive in English from the route tables and the data builder; ``t``
# swaps them for the phrases in ``PHRASES``.
_GENERAL_ES = {
    TemplateKey.ORAL_TABLET.value: (
        "{{ verb | t }} {{ doseText | t }} {{ route | t }} {{ frequency | t }}"
        "{{ specialInstructions | t }}."
    ),
    TemplateKey.LIQUID_DOSE.value: (
        "{{ verb | t }} {{ doseValue | number }} {{ doseUnit }}{{ dualDose | t }} "
        "{{ route | t }} {{ frequency | t }}{{ specialInstructions | t }}."
    ),
    TemplateKey.TOPICAL_APPLICATION.value: (
        "{{ verb | t }} {{ doseText | t }} {{ route | t }}{{ site | t }} {{ frequency | t }}"
        "{{ specialInstructions | t }}."
    ),
    TemplateKey.INJECTION.value: (
        "{{ verb | t }} {{ doseValue | number }} {{ doseUnit }}{{ dualDose | t }} "
        "{{ route | t }}{{ site | t }} {{ frequency | t }}{{ technique | t }}."
    ),
    TemplateKey.PRN_INSTRUCTION.value: (
        "{{ verb | t }} {{ doseText | t }} {{ route | t }} {{ frequencyText | t }} "
        "según sea necesario{{ indication | t }}{{ maxDose | t }}."
    ),
    TemplateKey.DEFAULT.value: (
        "{{ verb | t }} {{ doseText | t }} {{ route | t }} {{ frequency | t }}"
        "{{ specialInstructions | t }}."
    ),
}

TEMPLATES: dict[str, dict[str, str]] = {
    "en-US": _GENERAL_EN,
    "es-US": _GENERAL_ES,
}

SPECIALIZED_TEMPLATES: dict[str, dict[str, str]] = {
    "en-US": {
        TemplateKey.TESTOSTERONE_INJECTION.value: (
            "{{ verb }} {{ doseValue | number }} {{ doseUnit }}, as {{ dualDose }}, {{ route }} "
            "{{ frequency }}. "
            "{% if technique %}{{ technique }}{% else %}Rotate injection sites.{% endif %}"
        ),
        TemplateKey.TOPICLICK_APPLICATION.value: (
            "{{ verb }} {{ doseValue | plural(one='click', other='clicks') }} {{ route }}"
            "{% if site %} to {{ site }}{% endif %} {{ frequency }}"
            "{% if specialInstructions %} {{ specialInstructions }}{% endif %}."
        ),
        TemplateKey.COMPOUNDED_MEDICATION.value: (
            "{{ verb }} {{ doseValue | number }} {{ doseUnit }} of {{ medicationName }} "
            "{{ route }} {{ frequency }}"
            "{% if specialInstructions %} {{ specialInstructions }}{% endif %}. "
            "{% if compoundingInstructions %}"
            "Compounding notes: {{ compoundingInstructions }}{% endif %}"
        ),
        TemplateKey.INSULIN_INJECTION.value: (
            "{{ verb }} "
            "{% if doseUnit == 'unit' %}{{ doseValue | plural(one='unit', other='units') }}"
            "{% else %}{{ doseValue | number }} {{ doseUnit }}{% endif %} "
            "{{ route }} {{ frequency }}"
            "{% if mealTiming %} {{ mealTiming }}{% endif %}"
            "{% if site %}. Rotate injection sites in {{ site }}{% endif %}."
        ),
        TemplateKey.INHALER.value: (
            "{{ verb }} {{ doseValue | plural(one='puff', other='puffs') }} {{ route }} "
            "{{ frequency }}"
            "{% if spacerInstructions %} {{ spacerInstructions }}{% endif %}"
            "{% if rinseInstructions %} {{ rinseInstructions }}{% endif %}."
        ),
        TemplateKey.DROPS.value: (
            "{{ verb }} {{ doseValue | plural(one='drop', other='drops') }} {{ route }}"
            "{% if site %} in {{ site }}{% endif %} {{ frequency }}"
            "{% if waitBetweenDrops %} {{ waitBetweenDrops }}{% endif %}."
        ),
    },
}

# English phrase -> locale phrase. Matching is case-insensitive on whole words,
# longest phrase first.
PHRASES: dict[str, dict[str, str]] = {
    "es-US": {
        # Verbs
        "Take": "Tome",
        "Apply": "Aplique",
        "Inject": "Inyecte",
        "Dissolve": "Disuelva",
        "Place": "Coloque",
        "Insert": "Inserte",
        "Inhale": "Inhale",
        "Instill": "Aplique",
        "Spray": "Rocíe",
        # Routes
        "by mouth": "por vía oral",
        "under the tongue": "debajo de la lengua",
        "intramuscularly": "por vía intramuscular",
        "subcutaneously": "por vía subcutánea",
        "intravenously": "por vía intravenosa",
        "topically": "por vía tópica",
        "transdermally": "por vía transdérmica",
        "intranasally": "por vía nasal",
        "rectally": "por vía rectal",
        "vaginally": "por vía vaginal",
        "by inhalation": "por inhalación",
        "to the scalp": "en el cuero cabelludo",
        "in the eye": "en el ojo",
        "in the ear": "en el oído",
        "to the affected area": "en el área afectada",
        "a thin layer": "una capa delgada",
        # Frequencies
        "once daily": "una vez al día",
        "twice daily": "dos veces al día",
        "three times daily": "tres veces al día",
        "four times daily": "cuatro veces al día",
        "once weekly": "una vez por semana",
        "at bedtime": "al acostarse",
        "daily": "diariamente",
        "every": "cada",
        # Units and periods
        "tablet": "tableta",
        "tablets": "tabletas",
        "capsule": "cápsula",
        "capsules": "cápsulas",
        "click": "clic",
        "clicks": "clics",
        "drop": "gota",
        "drops": "gotas",
        "puff": "inhalación",
        "puffs": "inhalaciones",
        "patch": "parche",
        "patches": "parches",
        "units": "unidades",
        "hour": "hora",
        "hours": "horas",
        "day": "día",
        "days": "días",
        "week": "semana",
        "weeks": "semanas",
        # Clause connectors
        "as": "como",
        "for": "para",
        "into": "en",
        "with food": "con alimentos",
        "with meals": "con las comidas",
        "Do not exceed": "No exceda",
        "in": "en",
    },
}


def default_catalogs() -> dict[str, dict[str, str]]:
    """Fresh, mutable copy of every shipped locale with general and specialised templates."""
    catalogs = copy.deepcopy(TEMPLATES)
    for locale, templates in SPECIALIZED_TEMPLATES.items():
        catalogs.setdefault(locale, {}).update(templates)
    return catalogs
