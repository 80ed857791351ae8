from typing import Mapping, Optional
import hashlib


def device_fingerprint(headers: Mapping[str, str]) -> str:
    """Opaque, deterministic fingerprint from client-declared request metadata."""
    parts = [
        _header(headers, "user-agent"),
        _header(headers, "accept-language"),
        _header(headers, "accept-encoding"),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _header(headers: Mapping[str, str], name: str) -> str:
    # Starlette headers are case-insensitive; plain dicts in tests may not be
    value: Optional[str] = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return value or ""
