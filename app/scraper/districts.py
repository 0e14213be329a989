from __future__ import annotations

"""District Directory for the published-FIR portal.

Maps the district names shown on the portal to the internal codes its search
form submits. This table is the only source of truth for validating the
district a caller asks for.
"""

from types import MappingProxyType
from typing import Mapping

ALLOWED_DISTRICTS: Mapping[str, str] = MappingProxyType(
    {
        "AHILYANAGAR": "19372",
        "AKOLA": "19373",
        "AMRAVATI CITY": "19842",
        "AMRAVATI RURAL": "19374",
        "BEED": "19377",
        "BHANDARA": "19376",
        "BRIHAN MUMBAI CITY": "19378",
        "BULDHANA": "19379",
        "CHANDRAPUR": "19381",
        "CHHATRAPATI SAMBHAJINAGAR (RURAL)": "19375",
        "CHHATRAPATI SAMBHAJINAGAR CITY": "19409",
        "DHARASHIV": "19391",
        "DHULE": "19382",
        "GADCHIROLI": "19403",
        "GONDIA": "19845",
        "HINGOLI": "19846",
        "JALGAON": "19384",
        "JALNA": "19380",
        "KOLHAPUR": "19386",
        "LATUR": "19405",
        "Mira-Bhayandar, Vasai-Virar Police Commissioner": "19411",
        "NAGPUR CITY": "19387",
        "NAGPUR RURAL": "19388",
        "NANDED": "19389",
        "NANDURBAR": "19844",
        "NASHIK CITY": "19408",
        "NASHIK RURAL": "19390",
        "NAVI MUMBAI": "19841",
        "PALGHAR": "19371",
        "PARBHANI": "19392",
        "PIMPRI-CHINCHWAD": "19847",
        "PUNE CITY": "19393",
        "PUNE RURAL": "19394",
        "RAIGAD": "19385",
        "RAILWAY CHHATRAPATI SAMBHAJINAGAR": "19848",
        "RAILWAY MUMBAI": "19404",
        "RAILWAY NAGPUR": "19402",
        "RAILWAY PUNE": "19383",
        "RATNAGIRI": "19395",
        "SANGLI": "19396",
        "SATARA": "19397",
        "SINDHUDURG": "19406",
        "SOLAPUR CITY": "19410",
        "SOLAPUR RURAL": "19398",
        "THANE CITY": "19399",
        "THANE RURAL": "19407",
        "WARDHA": "19400",
        "WASHIM": "19843",
        "YAVATMAL": "19401",
    }
)

_BY_FOLDED_NAME = {name.casefold(): (name, code) for name, code in ALLOWED_DISTRICTS.items()}


def resolve_district(name: str | None) -> tuple[str, str] | None:
    """Return ``(canonical_name, code)`` for a case-insensitive match, else ``None``."""

    if not name:
        return None
    return _BY_FOLDED_NAME.get(str(name).strip().casefold())


def district_code(name: str | None) -> str | None:
    match = resolve_district(name)
    return match[1] if match else None


__all__ = ["ALLOWED_DISTRICTS", "resolve_district", "district_code"]
