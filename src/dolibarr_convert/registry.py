from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import UnknownConversionError


@dataclass(frozen=True)
class ConversionDefinition:
    slug: str
    title: str
    description: str
    source: str
    target: str


CONVERSIONS: Tuple[ConversionDefinition, ...] = (
    ConversionDefinition(
        slug="valkenpower-dolibarr",
        title="Valkenpower → Dolibarr",
        description="Convert a Valkenpower XML product feed into Dolibarr product import files.",
        source="XML",
        target="Dolibarr",
    ),
    ConversionDefinition(
        slug="modification-refs",
        title="Modification de références",
        description="Bulk edit product references: prefix, suffix, find and replace, regex.",
        source="Excel / texte",
        target="Excel",
    ),
    ConversionDefinition(
        slug="modification-prix",
        title="Modification de prix",
        description="Raise or lower HT or TTC prices by an amount or a percentage.",
        source="Excel / texte",
        target="Dolibarr",
    ),
    ConversionDefinition(
        slug="fusion-excel",
        title="Fusion Excel",
        description="Update a spreadsheet with values looked up by reference in another one.",
        source="Excel",
        target="Excel",
    ),
    ConversionDefinition(
        slug="excel-dolibarr",
        title="Excel → Dolibarr",
        description="Map the columns of any spreadsheet onto Dolibarr product import fields.",
        source="Excel / CSV",
        target="Dolibarr",
    ),
)

_BY_SLUG: Dict[str, ConversionDefinition] = {c.slug: c for c in CONVERSIONS}


def get_conversion(slug: str) -> ConversionDefinition:
    try:
        return _BY_SLUG[slug]
    except KeyError:
        raise UnknownConversionError(slug) from None
