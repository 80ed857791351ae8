from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
import asyncio
import ipaddress
import json
import logging
import os

import httpx
from fastapi import Depends, Request
from redis.exceptions import RedisError

from app.database import get_redis
from app.exceptions import SignalUnavailable
from app.services.geoip import lookup_asn, lookup_country

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SEC = float(os.getenv("IP_GEOLOCATION_TIMEOUT_SEC", "2.0"))
# Upper bound for the whole provider chain, so a slow first provider cannot stack with the second
TOTAL_TIMEOUT_SEC = float(os.getenv("IP_GEOLOCATION_TOTAL_TIMEOUT_SEC", "3.0"))
CACHE_TTL_SEC = int(os.getenv("GEOIP_CACHE_TTL_SEC", "86400"))
USER_AGENT = os.getenv("IP_GEOLOCATION_USER_AGENT", "location-risk-engine/0.1")

VPN_ASN_KEYWORDS = (
    "vpn", "proxy", "hosting", "datacenter", "data center", "colo",
    "digitalocean", "amazon", "google cloud", "microsoft", "ovh", "hetzner",
    "linode", "vultr", "choopa", "m247", "leaseweb", "contabo",
)


def _env_list(name: str, default: str = "") -> List[str]:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]


@dataclass(frozen=True)
class IpSignal:
    """Everything the collectors learned about one client IP."""

    ip: Optional[str]
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    is_vpn: bool = False
    is_suspicious: bool = False
    source: Optional[str] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.country_code is not None


def client_ip_from_request(request: Request) -> Optional[str]:
    """Best-effort client IP: CF-Connecting-IP, X-Forwarded-For (left-most), X-Real-IP, then the peer."""
    headers = request.headers
    ip = headers.get("cf-connecting-ip")
    if ip:
        return ip.strip()
    xff = headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    ip = headers.get("x-real-ip")
    if ip:
        return ip.strip()
    return request.client.host if request.client else None


def _ip_in_prefixes(ip: str, prefixes: List[str]) -> bool:
    try:
        ip_obj = ipaddress.ip_address(ip)
    except ValueError:
        return False
    for pref in prefixes:
        try:
            if ip_obj in ipaddress.ip_network(pref, strict=False):
                return True
        except ValueError:
            # Ignore invalid prefixes
            continue
    return False


def is_non_routable(ip: str) -> bool:
    addr = ipaddress.ip_address(ip)
    return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved or addr.is_multicast


def is_suspicious_ip(ip: str) -> bool:
    """Datacenter-heavy ranges commonly used for proxying."""
    return any(ip.startswith(p) for p in _env_list("SUSPICIOUS_IP_PREFIXES", "104.,45."))


def is_vpn_by_network(ip: str) -> bool:
    if _ip_in_prefixes(ip, _env_list("VPN_IP_RANGES")):
        return True
    org = (lookup_asn(ip).get("asn_org") or "").lower()
    return bool(org) and any(k in org for k in VPN_ASN_KEYWORDS)


# ----------------------
# HTTP providers
# ----------------------

ProviderResult = Dict[str, Any]


async def _ipapi_co(client: httpx.AsyncClient, ip: str) -> ProviderResult:
    response = await client.get(f"https://ipapi.co/{ip}/json/", headers={"User-Agent": USER_AGENT})
    response.raise_for_status()
    data = response.json()
    if data.get("error"):
        raise SignalUnavailable(data.get("reason") or "IP lookup failed")
    return {"country_code": data.get("country_code"), "country_name": data.get("country_name"), "is_vpn": False}


async def _ip_api_com(client: httpx.AsyncClient, ip: str) -> ProviderResult:
    response = await client.get(
        f"http://ip-api.com/json/{ip}",
        params={"fields": "status,message,countryCode,country,proxy,hosting,query"},
    )
    response.raise_for_status()
    data = response.json()
    if data.get("status") == "fail":
        raise SignalUnavailable(data.get("message") or "IP lookup failed")
    return {
        "country_code": data.get("countryCode"),
        "country_name": data.get("country"),
        "is_vpn": bool(data.get("proxy") or data.get("hosting")),
    }


Provider = Tuple[str, Callable[[httpx.AsyncClient, str], Awaitable[ProviderResult]]]

DEFAULT_PROVIDERS: List[Provider] = [("ipapi.co", _ipapi_co), ("ip-api.com", _ip_api_com)]


class IpCountryResolver:
    """Resolve an IP to a country with a bounded, fail-soft lookup chain.

    Order: Redis cache, local GeoLite2 database, then each HTTP provider in
    turn. Timeouts, non-success responses and malformed payloads never escape
    ``resolve``; they yield an unresolved ``IpSignal`` carrying the error.
    """

    def __init__(
        self,
        redis=None,
        http_client: Optional[httpx.AsyncClient] = None,
        providers: Optional[List[Provider]] = None,
        timeout: float = REQUEST_TIMEOUT_SEC,
        total_timeout: float = TOTAL_TIMEOUT_SEC,
    ):
        self.redis = redis
        self.http_client = http_client
        self.providers = DEFAULT_PROVIDERS if providers is None else providers
        self.timeout = timeout
        self.total_timeout = total_timeout

    async def resolve(self, ip: Optional[str]) -> IpSignal:
        if not ip:
            return IpSignal(ip=None, error="no_ip_address")
        try:
            if is_non_routable(ip):
                return IpSignal(ip=ip, error="private_ip")
        except ValueError:
            return IpSignal(ip=ip, error="invalid_ip")

        network_vpn = is_vpn_by_network(ip)
        suspicious = is_suspicious_ip(ip)

        found = await self._from_cache(ip)
        if found is None:
            local = lookup_country(ip)
            if local:
                found = {"country_code": local["country_iso"], "country_name": local.get("country"), "is_vpn": False, "source": "geolite2"}
        if found is None:
            try:
                found = await asyncio.wait_for(self._from_providers(ip), timeout=self.total_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[IpGeo] Lookup for {ip} exceeded {self.total_timeout}s")
                found = None
            except SignalUnavailable as e:
                logger.warning(f"[IpGeo] All providers failed for {ip}: {e.message}")
                found = None
            if found is not None:
                await self._to_cache(ip, found)

        if found is None:
            return IpSignal(ip=ip, is_vpn=network_vpn, is_suspicious=suspicious, error="geolocation_unavailable")
        code = found.get("country_code")
        return IpSignal(
            ip=ip,
            country_code=code.upper() if isinstance(code, str) and code else None,
            country_name=found.get("country_name"),
            is_vpn=network_vpn or bool(found.get("is_vpn")),
            is_suspicious=suspicious,
            source=found.get("source"),
            error=None if code else "geolocation_unavailable",
        )

    async def _from_providers(self, ip: str) -> ProviderResult:
        if self.http_client is not None:
            return await self._query_all(self.http_client, ip)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._query_all(client, ip)

    async def _query_all(self, client: httpx.AsyncClient, ip: str) -> ProviderResult:
        errors: List[str] = []
        for name, provider in self.providers:
            try:
                result = await provider(client, ip)
            except SignalUnavailable as e:
                errors.append(f"{name}: {e.message}")
                continue
            except httpx.HTTPError as e:
                errors.append(f"{name}: {type(e).__name__}")
                continue
            except ValueError as e:
                # Malformed JSON body
                errors.append(f"{name}: {e}")
                continue
            if result.get("country_code"):
                result["source"] = name
                return result
            errors.append(f"{name}: empty country")
        raise SignalUnavailable("; ".join(errors) or "no providers configured")

    async def _from_cache(self, ip: str) -> Optional[ProviderResult]:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(f"geoip:{ip}")
            if not raw:
                return None
            cached = json.loads(raw)
        except (RedisError, ValueError):
            return None
        if not isinstance(cached, dict) or not cached.get("country_code"):
            return None
        cached["source"] = "cache"
        return cached

    async def _to_cache(self, ip: str, found: ProviderResult) -> None:
        if self.redis is None:
            return
        payload = {k: found.get(k) for k in ("country_code", "country_name", "is_vpn")}
        try:
            await self.redis.setex(f"geoip:{ip}", CACHE_TTL_SEC, json.dumps(payload))
        except RedisError as e:
            logger.warning(f"[IpGeo] Cache write failed for {ip}: {e}")


def get_ip_resolver(redis=Depends(get_redis)) -> IpCountryResolver:
    return IpCountryResolver(redis=redis)
