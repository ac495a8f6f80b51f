from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Tuple, Union

from .normalize import parse_price


Cell = Union[str, int, float, None]
DefaultValue = Union[str, Callable[[Sequence[Cell]], str], None]


@dataclass(frozen=True)
class TargetField:
    id: str
    header: str
    label: str
    required: bool = False
    aliases: Tuple[str, ...] = field(default_factory=tuple)
    default: DefaultValue = None
    transform: Optional[Callable[[Cell], str]] = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def default_for(self, row: Sequence[Cell]) -> str:
        if callable(self.default):
            return self.default(row)
        return self.default or ""


# Order matters: auto-detection claims the first field whose alias matches,
# so specific fields must precede generic ones that share alias substrings.
DOLIBARR_COLUMNS: Tuple[TargetField, ...] = (
    TargetField(
        id="ref",
        header="Réf.* (p.ref)",
        label="Référence",
        required=True,
        aliases=("ref", "référence", "referentie", "reference", "sku", "article", "product_code", "code_article"),
    ),
    TargetField(
        id="label",
        header="Libellé* (p.label)",
        label="Libellé",
        required=True,
        aliases=(
            "label", "libellé", "libelle", "désignation", "designation", "benaming", "name", "nom",
            "title", "titre", "product_name", "nom_produit", "intitulé", "intitule",
        ),
    ),
    TargetField(
        id="fk_product_type",
        header="Type* (p.fk_product_type)",
        label="Type produit",
        required=True,
        aliases=("type", "product_type", "type_produit"),
        default="0",
    ),
    TargetField(
        id="tosell",
        header="En vente* (p.tosell)",
        label="En vente",
        required=True,
        aliases=("tosell", "en_vente", "vente", "sellable", "a_vendre"),
        default="1",
    ),
    TargetField(
        id="tobuy",
        header="En achat* (p.tobuy)",
        label="En achat",
        required=True,
        aliases=("tobuy", "en_achat", "achat", "buyable", "a_acheter"),
        default="1",
    ),
    TargetField(
        id="description",
        header="Description (p.description)",
        label="Description",
        aliases=("description", "desc", "détail", "detail", "details", "product_description"),
    ),
    TargetField(
        id="price",
        header="Prix de vente HT (p.price)",
        label="Prix HT",
        aliases=(
            "prix", "price", "prijs", "prix_ht", "price_ht", "prix_vente", "selling_price", "pvht",
            "prix_hors_taxe", "prix de vente",
        ),
        transform=parse_price,
    ),
    TargetField(
        id="price_min",
        header="Prix de vente min. (p.price_min)",
        label="Prix min",
        aliases=("prix_min", "price_min", "prix_minimum", "min_price", "prix_mini"),
        transform=parse_price,
    ),
    TargetField(
        id="price_ttc",
        header="Prix de vente TTC (p.price_ttc)",
        label="Prix TTC",
        aliases=("prix_ttc", "price_ttc", "prix_vente_ttc", "price_incl_vat", "prix_avec_taxes", "pvttc"),
        transform=parse_price,
    ),
    TargetField(
        id="tva_tx",
        header="Taux TVA (p.tva_tx)",
        label="TVA",
        aliases=("tva", "vat", "btw", "tva_tx", "taux_tva", "vat_rate"),
        default="21.0",
    ),
    TargetField(
        id="price_base_type",
        header="PriceBaseType (p.price_base_type)",
        label="Base prix",
        aliases=("price_base_type", "base_price", "type_prix"),
        default="HT",
    ),
    TargetField(
        id="barcode",
        header="Code-barres (p.barcode)",
        label="Code-barres",
        aliases=("ean", "barcode", "code_barre", "code-barres", "codebarre", "upc", "gtin", "ean13", "ean-13"),
    ),
    TargetField(
        id="weight",
        header="Weight (p.weight)",
        label="Poids",
        aliases=("poids", "weight", "gewicht", "masse"),
    ),
    TargetField(
        id="weight_units",
        header="Unité de poids (p.weight_units)",
        label="Unité poids",
        aliases=("weight_unit", "unité_poids", "unite_poids"),
        default="kg",
    ),
    TargetField(
        id="url",
        header="URL publique (p.url)",
        label="URL",
        aliases=("url", "lien", "link", "website", "image", "image_url"),
    ),
)

# Columns emitted without a source mapping once one of the fields they qualify is mapped.
AUXILIARY_FIELDS = {
    "tva_tx": ("price", "price_ttc"),
    "price_base_type": ("price", "price_ttc"),
    "weight_units": ("weight",),
}

# Fields always driven by ConversionOptions when not read from the source.
OPTION_DRIVEN_FIELDS = ("tva_tx", "price_base_type", "fk_product_type", "tosell", "tobuy")


def find_field(field_id: str, catalog: Sequence[TargetField] = DOLIBARR_COLUMNS) -> Optional[TargetField]:
    for f in catalog:
        if f.id == field_id:
            return f
    return None
