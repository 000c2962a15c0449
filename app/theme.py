"""Theme variant registry: swappable hero and post-card partials."""
from dataclasses import dataclass


@dataclass(frozen=True)
class VariantMeta:
    id: str
    name: str
    description: str


DEFAULT_HERO = "centered"
DEFAULT_CARD = "classic"

HERO_VARIANTS: dict[str, VariantMeta] = {
    "centered": VariantMeta("centered", "Centered", "Classic centered layout with search bar"),
    "split": VariantMeta("split", "Split", "Two-column layout with featured image"),
    "minimal": VariantMeta("minimal", "Minimal", "Clean, text-focused design"),
}

CARD_VARIANTS: dict[str, VariantMeta] = {
    "classic": VariantMeta("classic", "Classic", "Traditional blog card with image on top"),
    "modern": VariantMeta("modern", "Modern", "Contemporary card with hover effects"),
}


def hero_template(variant: str | None) -> str:
    if variant not in HERO_VARIANTS:
        variant = DEFAULT_HERO
    return f"heroes/{variant}.html"


def card_template(variant: str | None) -> str:
    if variant not in CARD_VARIANTS:
        variant = DEFAULT_CARD
    return f"cards/{variant}.html"
