from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


log = logging.getLogger(__name__)

ENV_PREFIX = "DOLIBARR_"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Dolibarr's importer struggles past this many rows per workbook
    max_rows_per_file: int = 800
    header_scan_rows: int = 20
    default_tva_rate: float = 21.0
    product_sheet_name: str = "Produits"
    merge_sheet_name: str = "Fusion"
    modifications_sheet_name: str = "Modifications"
    output_prefix: str = "produits"
    merge_prefix: str = "fusion"


def default_settings() -> Dict:
    return Settings().model_dump()


def _from_env() -> Dict:
    data: Dict = {}
    for name in Settings.model_fields:
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is None or raw.strip() == "":
            continue
        data[name] = raw.strip()
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """Defaults, overlaid by an optional JSON file, overlaid by DOLIBARR_* env vars."""
    base = default_settings()
    if path is not None:
        if path.exists():
            try:
                base.update(json.loads(path.read_text(encoding="utf-8")) or {})
            except json.JSONDecodeError as e:
                log.warning(f"Ignoring unreadable settings file {path}: {e}")
        else:
            log.debug(f"Settings file not found: {path}")
    base.update(_from_env())
    return Settings(**base)


def save_settings(path: Path, settings: Settings) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.model_dump(), indent=2), encoding="utf-8")
