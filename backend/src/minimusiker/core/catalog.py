"""Shopify product catalog constants used by orders and checkout."""

from typing import Dict, NamedTuple, Optional

SHOPIFY_VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"


class ClothingVariant(NamedTuple):
    type: str  # 'tshirt' | 'hoodie'
    size: str


# Personalised clothing, grouped per school event
CLOTHING_VARIANTS: Dict[str, ClothingVariant] = {
    # T-Shirt (Personalisiert)
    "53328502194522": ClothingVariant("tshirt", "98/104"),
    "53328502227290": ClothingVariant("tshirt", "110/116"),
    "53328502260058": ClothingVariant("tshirt", "122/128"),
    "53328502292826": ClothingVariant("tshirt", "134/146"),
    "53328502325594": ClothingVariant("tshirt", "152/164"),
    # Hoodie (Personalisiert)
    "53328494788954": ClothingVariant("hoodie", "116"),
    "53328494821722": ClothingVariant("hoodie", "128"),
    "53328494854490": ClothingVariant("hoodie", "140"),
    "53328494887258": ClothingVariant("hoodie", "152"),
    "53328494920026": ClothingVariant("hoodie", "164"),
}

TSHIRT_SIZES = ["98/104", "110/116", "122/128", "134/146", "152/164"]
HOODIE_SIZES = ["116", "128", "140", "152", "164"]

# Discount codes applied by the checkout
EARLY_BIRD_CODE = "EARLYBIRD10"
BUNDLE_CODE = "BUNDLE15"


def numeric_variant_id(variant_id: str) -> str:
    """Strip the Shopify GID prefix, leaving the numeric variant ID."""
    if variant_id.startswith(SHOPIFY_VARIANT_GID_PREFIX):
        return variant_id[len(SHOPIFY_VARIANT_GID_PREFIX):]
    return variant_id


def variant_gid(variant_id: str) -> str:
    return f"{SHOPIFY_VARIANT_GID_PREFIX}{numeric_variant_id(variant_id)}"


def clothing_details(variant_id: str) -> Optional[ClothingVariant]:
    return CLOTHING_VARIANTS.get(numeric_variant_id(str(variant_id)))
