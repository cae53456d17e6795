"""VIN decoding against NHTSA vPIC with an offline fallback.

Lookups never raise: a failed or slow upstream call degrades to whatever can
be read from the VIN itself, so vehicle intake is never blocked on it.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

VIN_RE = re.compile(r"^[A-HJ-NPR-Z0-9]{17}$")

# 10th character -> model year, first 30-year cycle (1980-2009)
_YEAR_CODES = "ABCDEFGHJKLMNPRSTVWXY123456789"

# World manufacturer identifiers seen on the lot; vPIC covers the rest
_WMI_MAKES = {
    "1G1": "Chevrolet", "1GC": "Chevrolet", "1GN": "Chevrolet", "2G1": "Chevrolet", "3GN": "Chevrolet",
    "1G6": "Cadillac", "1GY": "Cadillac",
    "5GA": "Buick", "4GA": "Buick",
    "1GT": "GMC", "1GK": "GMC",
    "1FA": "Ford", "1FT": "Ford", "1FM": "Ford",
    "1HG": "Honda", "JHM": "Honda",
    "JTD": "Toyota", "4T1": "Toyota", "5TD": "Toyota",
    "SCB": "Bentley",
}


def normalize_vin(vin: Optional[str]) -> str:
    return (vin or "").strip().upper()


def is_valid_vin(vin: Optional[str]) -> bool:
    return bool(VIN_RE.fullmatch(normalize_vin(vin)))


def model_year_from_vin(vin: str, current_year: Optional[int] = None) -> Optional[int]:
    """Latest year matching the 10th character that is not past next model year."""
    vin = normalize_vin(vin)
    if len(vin) != 17:
        return None
    idx = _YEAR_CODES.find(vin[9])
    if idx < 0:
        return None
    limit = (current_year or datetime.now(timezone.utc).year) + 1
    year = 1980 + idx
    while year + 30 <= limit:
        year += 30
    return year


class ModelYearCache:
    """
    model_year -> {make -> [model names]}.

    One instance per application; entries are never evicted.
    """

    def __init__(self):
        self._by_year: Dict[int, Dict[str, List[str]]] = {}

    def get(self, year: int, make: str) -> Optional[List[str]]:
        return self._by_year.get(int(year), {}).get(make.strip().lower())

    def put(self, year: int, make: str, models: List[str]) -> None:
        self._by_year.setdefault(int(year), {})[make.strip().lower()] = list(models)

    def years(self) -> List[int]:
        return sorted(self._by_year)

    def clear(self) -> None:
        self._by_year.clear()


class VinDecoder:
    def __init__(self, base_url: str, timeout: float, cache: ModelYearCache, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache
        self.session = session or requests.Session()

    def _get_results(self, path: str) -> List[dict]:
        resp = self.session.get(f"{self.base_url}/{path}", params={"format": "json"}, timeout=self.timeout)
        resp.raise_for_status()
        return list(resp.json().get("Results") or [])

    def offline_decode(self, vin: str) -> dict:
        vin = normalize_vin(vin)
        year = model_year_from_vin(vin)
        return {
            "vin": vin,
            "year": str(year) if year else None,
            "make": _WMI_MAKES.get(vin[:3]),
            "model": None,
            "decoded_offline": True,
        }

    def decode(self, vin: str) -> dict:
        vin = normalize_vin(vin)
        if not is_valid_vin(vin):
            raise ValueError("invalid_vin")

        try:
            results = self._get_results(f"DecodeVinValues/{vin}")
        except (requests.RequestException, ValueError):
            logger.warning("vPIC decode failed for %s, using offline decode", vin, exc_info=True)
            return self.offline_decode(vin)

        if not results:
            return self.offline_decode(vin)

        r = results[0]
        year = (r.get("ModelYear") or "").strip() or None
        make = (r.get("Make") or "").strip().title() or None
        model = (r.get("Model") or "").strip() or None
        if not (year or make or model):
            return self.offline_decode(vin)

        return {"vin": vin, "year": year, "make": make, "model": model, "decoded_offline": False}

    def models_for(self, make: str, year: int) -> List[str]:
        cached = self.cache.get(year, make)
        if cached is not None:
            return cached

        try:
            results = self._get_results(f"GetModelsForMakeYear/make/{make.strip()}/modelyear/{int(year)}")
        except (requests.RequestException, ValueError):
            logger.warning("vPIC model lookup failed for %s %s", year, make, exc_info=True)
            return []

        models = sorted({(r.get("Model_Name") or "").strip() for r in results} - {""})
        self.cache.put(year, make, models)
        return models
