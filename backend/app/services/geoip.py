from __future__ import annotations
from typing import Dict, Any, Optional
from pathlib import Path
import logging
import os

import maxminddb

logger = logging.getLogger(__name__)

# Lazy-initialized readers
_ASN_READER = None
_CITY_READER = None
_INITIALISED = False


def _candidate_data_dirs() -> list[Path]:
    # .../backend/app/services/geoip.py -> repo root is parents[3]
    repo_root = Path(__file__).resolve().parents[3]
    return [repo_root / "data", repo_root / "backend" / "data"]


def _find_database(env_var: str, filename: str) -> Optional[str]:
    path = os.getenv(env_var)
    if path:
        return path
    for d in _candidate_data_dirs():
        p = d / filename
        if p.exists():
            return str(p)
    return None


def _open(path: Optional[str]):
    if not path or not Path(path).exists():
        return None
    try:
        return maxminddb.open_database(path)
    except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
        logger.warning(f"[GeoIP] Could not open {path}: {e}")
        return None


def init_geoip_readers() -> None:
    global _ASN_READER, _CITY_READER, _INITIALISED
    if _INITIALISED:
        return
    _ASN_READER = _open(_find_database("GEOIP2_ASN_DB", "GeoLite2-ASN.mmdb"))
    _CITY_READER = _open(_find_database("GEOIP2_CITY_DB", "GeoLite2-City.mmdb"))
    _INITIALISED = True


def _get(reader, ip: str) -> Dict[str, Any]:
    if reader is None or not ip:
        return {}
    try:
        raw = reader.get(ip)
    except (ValueError, maxminddb.InvalidDatabaseError):
        return {}
    return raw if isinstance(raw, dict) else {}


def lookup_asn(ip: str) -> Dict[str, Any]:
    """ASN number and organisation for ``ip`` from the local GeoLite2-ASN database."""
    init_geoip_readers()
    rec = _get(_ASN_READER, ip)
    if not rec:
        return {}
    return {
        "asn": rec.get("autonomous_system_number"),
        "asn_org": rec.get("autonomous_system_organization"),
    }


def lookup_country(ip: str) -> Dict[str, Any]:
    """Country ISO code and English name from the local GeoLite2-City database."""
    init_geoip_readers()
    rec = _get(_CITY_READER, ip)
    country_val = rec.get("country")
    if not isinstance(country_val, dict):
        return {}
    iso = country_val.get("iso_code")
    names = country_val.get("names")
    name = names.get("en") if isinstance(names, dict) else None
    if not isinstance(iso, str):
        return {}
    return {"country_iso": iso.upper(), "country": name if isinstance(name, str) else None}
