"""
StateCodeRegistry - GST jurisdiction lookup.

Resolves state names, short names, cities and free-text addresses to the
2-digit GST state/UT code. Lookups never fail: anything unresolved falls back
to a default code, so callers must treat the default as "unknown".

Tables are built once at import time and exposed read-only.
"""
import re
from types import MappingProxyType
from typing import Optional, List, Dict

from .config import Config
from .models import JurisdictionEntry


# ─────────────────────────────────────────────────────────────
# Reference Data
# ─────────────────────────────────────────────────────────────

JURISDICTIONS = tuple(JurisdictionEntry(code, name, short, kind) for code, name, short, kind in [
    ("01", "Jammu and Kashmir", "JK", "union_territory"),
    ("02", "Himachal Pradesh", "HP", "state"),
    ("03", "Punjab", "PB", "state"),
    ("04", "Chandigarh", "CH", "union_territory"),
    ("05", "Uttarakhand", "UK", "state"),
    ("06", "Haryana", "HR", "state"),
    ("07", "Delhi", "DL", "union_territory"),
    ("08", "Rajasthan", "RJ", "state"),
    ("09", "Uttar Pradesh", "UP", "state"),
    ("10", "Bihar", "BR", "state"),
    ("11", "Sikkim", "SK", "state"),
    ("12", "Arunachal Pradesh", "AR", "state"),
    ("13", "Nagaland", "NL", "state"),
    ("14", "Manipur", "MN", "state"),
    ("15", "Mizoram", "MZ", "state"),
    ("16", "Tripura", "TR", "state"),
    ("17", "Meghalaya", "ML", "state"),
    ("18", "Assam", "AS", "state"),
    ("19", "West Bengal", "WB", "state"),
    ("20", "Jharkhand", "JH", "state"),
    ("21", "Odisha", "OD", "state"),
    ("22", "Chhattisgarh", "CG", "state"),
    ("23", "Madhya Pradesh", "MP", "state"),
    ("24", "Gujarat", "GJ", "state"),
    ("25", "Daman and Diu", "DD", "union_territory"),
    ("26", "Dadra and Nagar Haveli and Daman and Diu", "DN", "union_territory"),
    ("27", "Maharashtra", "MH", "state"),
    ("28", "Andhra Pradesh", "AP", "state"),
    ("29", "Karnataka", "KA", "state"),
    ("30", "Goa", "GA", "state"),
    ("31", "Lakshadweep", "LD", "union_territory"),
    ("32", "Kerala", "KL", "state"),
    ("33", "Tamil Nadu", "TN", "state"),
    ("34", "Puducherry", "PY", "union_territory"),
    ("35", "Andaman and Nicobar Islands", "AN", "union_territory"),
    ("36", "Telangana", "TS", "state"),
    ("37", "Andhra Pradesh (New)", "AD", "state"),
    ("38", "Ladakh", "LA", "union_territory"),
    ("97", "Other Territory", "OT", "union_territory"),
    ("99", "Centre Jurisdiction", "CJ", "union_territory"),
])

CITY_CODES = MappingProxyType({
    "mumbai": "27", "pune": "27", "nagpur": "27",
    "delhi": "07", "new delhi": "07",
    "gurgaon": "06", "gurugram": "06",
    "noida": "09", "lucknow": "09", "kanpur": "09",
    "bangalore": "29", "bengaluru": "29",
    "chennai": "33", "coimbatore": "33",
    "hyderabad": "36",
    "kolkata": "19",
    "ahmedabad": "24", "surat": "24",
    "jaipur": "08",
    "indore": "23", "bhopal": "23",
    "patna": "10",
    "chandigarh": "04",
    "ludhiana": "03",
    "kochi": "32",
    "visakhapatnam": "28",
    "vijayawada": "37",
})

# First two digits of a PIN code identify the postal zone
PIN_ZONE_CODES = MappingProxyType({
    "11": "07", "12": "06", "13": "03", "14": "04", "15": "01", "16": "02", "17": "02",
    "18": "09", "19": "09", "20": "09", "21": "09", "22": "09", "23": "09", "24": "09",
    "25": "08", "26": "09", "27": "09", "28": "09",
    "30": "08", "31": "08", "32": "08", "33": "08", "34": "08",
    "36": "24", "37": "24", "38": "24", "39": "24",
    "40": "27", "41": "27", "42": "27", "43": "27", "44": "27",
    "45": "23", "46": "23", "47": "23", "48": "23", "49": "22",
    "50": "36", "51": "28", "52": "28", "53": "28",
    "56": "29", "57": "29", "58": "29", "59": "29",
    "60": "33", "61": "33", "62": "33", "63": "33", "64": "33",
    "67": "32", "68": "32", "69": "32",
    "70": "19", "71": "19", "72": "19", "73": "19", "74": "19",
    "75": "21", "76": "21", "77": "21", "78": "18", "79": "12",
    "80": "10", "81": "10", "82": "10", "83": "20", "84": "10", "85": "20",
})

PIN_PATTERN = re.compile(r'\b([1-9][0-9]{5})\b')

# Not offered as a selectable place of supply
NON_SELECTABLE_CODES = frozenset({"97", "99"})


class StateCodeRegistry:
    """
    Static jurisdiction lookups.

    Usage:
        registry = StateCodeRegistry()
        registry.code_for_name("Karnataka")          # "29"
        registry.code_from_address_text("Pune 411001")  # "27"
    """

    def __init__(self, default_code: Optional[str] = None):
        self.default_code = default_code or Config.DEFAULT_JURISDICTION
        self._by_code = MappingProxyType({e.code: e for e in JURISDICTIONS})
        self._by_name = MappingProxyType({e.name.lower(): e for e in JURISDICTIONS})
        self._by_short_name = MappingProxyType({e.short_name.lower(): e for e in JURISDICTIONS})

    def entry_for(self, code: str) -> Optional[JurisdictionEntry]:
        if not code:
            return None
        return self._by_code.get(str(code).strip().zfill(2))

    def name_for(self, code: str) -> str:
        entry = self.entry_for(code)
        return entry.name if entry else "Unknown"

    def is_valid(self, code: str) -> bool:
        return self.entry_for(code) is not None

    def code_for_name(self, name: str, default: Optional[str] = None) -> str:
        """
        Resolve a state name, short name or bare code.

        Falls back to `default`, or to the registry default when `default`
        is None. Pass default="" to get an empty code for unresolved names.
        """
        fallback = self.default_code if default is None else default
        if name is None:
            return fallback
        key = str(name).strip().lower()
        if not key:
            return fallback

        if key.isdigit() and len(key) <= 2:
            entry = self.entry_for(key)
            return entry.code if entry else fallback

        entry = self._by_name.get(key) or self._by_short_name.get(key) or self._find_partial(key)
        return entry.code if entry else fallback

    def code_for_city(self, city: str) -> Optional[str]:
        if not city:
            return None
        return CITY_CODES.get(str(city).strip().lower())

    def code_from_address_text(self, text: str) -> str:
        """City, then state name, then PIN zone, then the default code."""
        if not text:
            return self.default_code
        lower = text.lower()

        for city, code in CITY_CODES.items():
            if city in lower:
                return code

        for entry in JURISDICTIONS:
            if entry.name.lower() in lower:
                return entry.code

        pin_match = PIN_PATTERN.search(text)
        if pin_match:
            return PIN_ZONE_CODES.get(pin_match.group(1)[:2], self.default_code)

        return self.default_code

    def options(self) -> List[Dict[str, str]]:
        """Selectable places of supply, e.g. for a settings dropdown."""
        return [
            {"value": e.code, "label": f"{e.code} - {e.name}"}
            for e in JURISDICTIONS
            if e.code not in NON_SELECTABLE_CODES
        ]

    def _find_partial(self, key: str) -> Optional[JurisdictionEntry]:
        if len(key) < 4:
            return None
        for entry in JURISDICTIONS:
            name = entry.name.lower()
            if key in name or name in key:
                return entry
        return None


registry = StateCodeRegistry()
