"""Ready-made contest rubrics.

Templates are constant ContestConfig values. Callers select one by key, or
fall back to the default template when a lookup misses.
"""
from __future__ import annotations

from typing import Any, Dict, List, Tuple

from .config import AttributeConfig, ContestConfig


def _attrs(*specs: Tuple[str, str, str]) -> List[AttributeConfig]:
    return [
        AttributeConfig(id=attr_id, label=label, description=description)
        for attr_id, label, description in specs
    ]


MIXOLOGY_CONFIG = ContestConfig(
    topic="Mixology",
    entryLabel="Drink",
    entryLabelPlural="Drinks",
    attributes=_attrs(
        ("aroma", "Aroma", "How appealing is the scent?"),
        ("balance", "Balance", "How well do the flavors work together?"),
        ("presentation", "Presentation", "Visual appeal and garnish"),
        ("creativity", "Creativity", "Originality and innovation"),
        ("overall", "Overall", "Overall impression"),
    ),
)

CHILI_CONFIG = ContestConfig(
    topic="Chili",
    entryLabel="Chili",
    entryLabelPlural="Chilies",
    attributes=_attrs(
        ("heat", "Heat", "Spiciness level and heat balance"),
        ("flavor", "Flavor", "Depth and complexity of taste"),
        ("texture", "Texture", "Consistency and mouthfeel"),
        ("appearance", "Appearance", "Visual presentation"),
        ("overall", "Overall", "Overall impression"),
    ),
)

COSPLAY_CONFIG = ContestConfig(
    topic="Cosplay",
    entryLabel="Cosplay",
    entryLabelPlural="Cosplays",
    attributes=_attrs(
        ("accuracy", "Accuracy", "Faithfulness to source material"),
        ("craftsmanship", "Craftsmanship", "Quality of construction and materials"),
        ("presentation", "Presentation", "Stage presence and posing"),
        ("creativity", "Creativity", "Original interpretation or design choices"),
    ),
)

DANCE_CONFIG = ContestConfig(
    topic="Dance",
    entryLabel="Performance",
    entryLabelPlural="Performances",
    attributes=_attrs(
        ("technique", "Technique", "Technical skill and execution"),
        ("musicality", "Musicality", "Rhythm and musical interpretation"),
        ("expression", "Expression", "Emotional delivery and storytelling"),
        ("difficulty", "Difficulty", "Complexity of choreography"),
        ("overall", "Overall", "Overall impression"),
    ),
)

BAKING_CONFIG = ContestConfig(
    topic="Baking",
    entryLabel="Bake",
    entryLabelPlural="Bakes",
    attributes=_attrs(
        ("taste", "Taste", "Flavor and deliciousness"),
        ("texture", "Texture", "Consistency and mouthfeel"),
        ("appearance", "Appearance", "Visual presentation and decoration"),
        ("creativity", "Creativity", "Originality and innovation"),
        ("technique", "Technique", "Baking skill demonstrated"),
    ),
)

BBQ_CONFIG = ContestConfig(
    topic="BBQ",
    entryLabel="Entry",
    entryLabelPlural="Entries",
    attributes=_attrs(
        ("taste", "Taste", "Overall flavor profile"),
        ("tenderness", "Tenderness", "Texture and bite"),
        ("appearance", "Appearance", "Visual presentation"),
        ("smoke", "Smoke", "Smoke ring and smokiness"),
    ),
)

DEFAULT_TEMPLATES: Dict[str, ContestConfig] = {
    "mixology": MIXOLOGY_CONFIG,
    "chili": CHILI_CONFIG,
    "cosplay": COSPLAY_CONFIG,
    "dance": DANCE_CONFIG,
    "baking": BAKING_CONFIG,
    "bbq": BBQ_CONFIG,
}

DEFAULT_TEMPLATE_KEY = "mixology"


def clone_config(config: ContestConfig) -> ContestConfig:
    """Deep copy so callers can edit a template without touching the constant."""
    return config.model_copy(deep=True)


def get_template(key: str) -> ContestConfig | None:
    """Case-insensitive lookup; None on miss."""
    template = DEFAULT_TEMPLATES.get((key or "").strip().lower())
    return clone_config(template) if template is not None else None


def get_template_keys() -> List[str]:
    return list(DEFAULT_TEMPLATES)


def get_template_list() -> List[Tuple[str, ContestConfig]]:
    return [(key, clone_config(config)) for key, config in DEFAULT_TEMPLATES.items()]


def get_default_template(key: str = DEFAULT_TEMPLATE_KEY) -> ContestConfig:
    return get_template(key) or clone_config(MIXOLOGY_CONFIG)


def get_effective_config(contest: Any, default_key: str = DEFAULT_TEMPLATE_KEY) -> ContestConfig:
    """A contest's own config, or the default template when it has none.

    Accepts a Contest model or a raw contest document.
    """
    raw = contest.get("config") if isinstance(contest, dict) else getattr(contest, "config", None)
    if isinstance(raw, ContestConfig):
        return raw
    if isinstance(raw, dict) and raw:
        return ContestConfig.model_validate(raw)
    return get_default_template(default_key)
