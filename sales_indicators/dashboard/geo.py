"""
Country code remapping and colour scale for the revenue choropleth

The world map indexes its features by ISO numeric code while the reporting
tables store ISO alpha-2 codes. Codes go alpha-2 -> alpha-3 -> numeric
through the tables in ``data/countries.json``; a code missing from either
table is left out of the map (the country keeps the neutral fill).
"""

from dataclasses import dataclass
from importlib import resources
from typing import Dict, Iterable, Optional
import json
import logging

from sales_indicators.api.models.report import CAParPays

logger = logging.getLogger(__name__)

NEUTRAL_FILL = "rgba(220, 220, 220, 0.5)"
BORDER_COLOR = "#156082"


def _load_country_tables() -> Dict[str, Dict[str, str]]:
    with resources.files("sales_indicators.dashboard").joinpath("data/countries.json").open(encoding="utf-8") as f:
        return json.load(f)


_TABLES = _load_country_tables()
ALPHA2_TO_ALPHA3: Dict[str, str] = _TABLES["alpha2_to_alpha3"]
ALPHA3_TO_NUMERIC: Dict[str, str] = _TABLES["alpha3_to_numeric"]
ALPHA2_TO_NAME_FR: Dict[str, str] = _TABLES["alpha2_to_name_fr"]

_NUMERIC_TO_ALPHA3 = {numeric: alpha3 for alpha3, numeric in ALPHA3_TO_NUMERIC.items()}
_ALPHA3_TO_ALPHA2 = {alpha3: alpha2 for alpha2, alpha3 in ALPHA2_TO_ALPHA3.items()}


def to_numeric_code(alpha2: Optional[str]) -> Optional[str]:
    """Translate an alpha-2 code to its ISO numeric code, None when unmapped"""
    if not alpha2:
        return None

    alpha3 = ALPHA2_TO_ALPHA3.get(alpha2.strip().upper())
    if alpha3 is None:
        logger.warning(f"No alpha-3 code for country {alpha2!r}")
        return None

    numeric = ALPHA3_TO_NUMERIC.get(alpha3)
    if numeric is None:
        logger.warning(f"No numeric code for {alpha3} ({alpha2})")
        return None

    return numeric


def country_name_fr(numeric_code: str) -> Optional[str]:
    """French display name of a map feature, from its numeric code"""
    alpha3 = _NUMERIC_TO_ALPHA3.get(numeric_code)
    alpha2 = _ALPHA3_TO_ALPHA2.get(alpha3) if alpha3 else None
    return ALPHA2_TO_NAME_FR.get(alpha2) if alpha2 else None


def revenue_by_numeric_code(rows: Iterable[CAParPays]) -> Dict[str, float]:
    """
    Key revenue by ISO numeric code

    Rows whose country cannot be mapped are skipped.
    """
    values: Dict[str, float] = {}
    for row in rows:
        numeric = to_numeric_code(row.country_code)
        if numeric is None:
            continue
        values[numeric] = values.get(numeric, 0.0) + row.revenue
    return values


@dataclass(frozen=True)
class ChoroplethScale:
    """Linear colour scale between the smallest and largest revenue shown"""
    min_value: float
    max_value: float

    @classmethod
    def from_values(cls, values: Iterable[float]) -> Optional["ChoroplethScale"]:
        values = list(values)
        if not values:
            return None
        return cls(min(values), max(values))

    def intensity(self, value: float) -> float:
        if self.max_value == self.min_value:
            return 1.0
        ratio = (value - self.min_value) / (self.max_value - self.min_value)
        return min(1.0, max(0.0, ratio))

    def color(self, value: Optional[float]) -> str:
        if not value:
            return NEUTRAL_FILL
        return f"rgba(0, 100, 255, {0.2 + self.intensity(value) * 0.8:.3f})"


def choropleth_fills(rows: Iterable[CAParPays]) -> Dict[str, str]:
    """Fill colour per numeric country code for the current result set"""
    values = revenue_by_numeric_code(rows)
    scale = ChoroplethScale.from_values(values.values())
    if scale is None:
        return {}
    return {code: scale.color(value) for code, value in values.items()}
