from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional
import enum
import logging

from app.exceptions import SignalUnavailable
from app.services.ip_geolocation import IpCountryResolver, IpSignal

logger = logging.getLogger(__name__)


class RiskFlag(str, enum.Enum):
    country_mismatch = "country_mismatch"
    vpn_detected = "vpn_detected"
    geolocation_unavailable = "geolocation_unavailable"
    phone_country_mismatch = "phone_country_mismatch"
    neighboring_country = "neighboring_country"
    suspicious_ip_pattern = "suspicious_ip_pattern"
    no_ip_address = "no_ip_address"


# Rule weights. Every weight is non-negative so adding a flag can never lower
# the score. Calibration against the policy bands:
#   mismatch + vpn                  = 90  -> block band
#   unavailable alone               = 50  -> monitor band, never block
#   mismatch without vpn (max)      = 75  -> never block on its own
# An unresolved IP country caps the total at the unavailable weight, so
# VPN ranges or datacenter prefixes seen during an outage stay in the
# monitor band.
default_rules: Dict[str, int] = {
    "country_mismatch": 50,
    "neighboring_country_mismatch": 35,
    "vpn_detected": 40,
    "geolocation_unavailable": 50,
    "suspicious_ip_pattern": 15,
    "phone_country_mismatch": 10,
}

MAX_SCORE = 100

# Border regions where IP geolocation commonly lands across the line
NEIGHBORS: Dict[str, FrozenSet[str]] = {
    "NA": frozenset({"AO", "ZM", "BW", "ZA"}),
    "ZA": frozenset({"NA", "BW", "ZW", "MZ", "SZ", "LS"}),
    "NG": frozenset({"BJ", "NE", "TD", "CM"}),
    "KE": frozenset({"ET", "SO", "SS", "UG", "TZ"}),
}


def are_neighboring_countries(a: str, b: str) -> bool:
    return b in NEIGHBORS.get(a, frozenset()) or a in NEIGHBORS.get(b, frozenset())


@dataclass(frozen=True)
class RiskAssessment:
    registered_country: str
    risk_score: int
    flags: FrozenSet[RiskFlag] = field(default_factory=frozenset)
    verified: bool = False
    detected_country: Optional[str] = None
    ip_address: Optional[str] = None
    message: Optional[str] = None
    method: str = "ip"

    def __post_init__(self):
        if not 0 <= self.risk_score <= MAX_SCORE:
            raise ValueError(f"risk_score out of range: {self.risk_score}")

    @property
    def is_vpn(self) -> bool:
        return RiskFlag.vpn_detected in self.flags

    def flag_values(self) -> List[str]:
        return sorted(f.value for f in self.flags)


def score_location(
    signal: IpSignal,
    registered_country: str,
    phone_country: Optional[str] = None,
    rules: Optional[Dict[str, int]] = None,
) -> RiskAssessment:
    """Accumulate rule weights for one set of resolved signals.

    Pure: no I/O, identical inputs give identical output. Score is capped at
    100, or at the unavailable weight when the IP country is unknown.
    ``verified`` is true iff neither a country mismatch nor a VPN indicator
    fired.
    """
    if rules is None:
        rules = default_rules
    registered = registered_country.upper()
    detected = signal.country_code
    flags = set()
    risk_score = 0

    if not signal.ip:
        flags.add(RiskFlag.no_ip_address)

    if detected is None:
        flags.add(RiskFlag.geolocation_unavailable)
        risk_score += rules["geolocation_unavailable"]
    elif detected != registered:
        flags.add(RiskFlag.country_mismatch)
        if are_neighboring_countries(registered, detected):
            flags.add(RiskFlag.neighboring_country)
            risk_score += rules["neighboring_country_mismatch"]
        else:
            risk_score += rules["country_mismatch"]

    if signal.is_vpn:
        flags.add(RiskFlag.vpn_detected)
        risk_score += rules["vpn_detected"]

    if signal.is_suspicious:
        flags.add(RiskFlag.suspicious_ip_pattern)
        risk_score += rules["suspicious_ip_pattern"]

    # Corroborating evidence only: the phone must disagree with both other sources
    if phone_country:
        phone = phone_country.upper()
        if phone != registered and phone != detected:
            flags.add(RiskFlag.phone_country_mismatch)
            risk_score += rules["phone_country_mismatch"]

    if detected is None:
        risk_score = min(risk_score, rules["geolocation_unavailable"])

    verified = not ({RiskFlag.country_mismatch, RiskFlag.vpn_detected} & flags)
    if detected is None:
        message = "Unable to determine location from IP"
    elif detected != registered:
        message = f"Location mismatch: detected {detected}, expected {registered}"
    elif signal.is_vpn:
        message = "VPN or proxy detected"
    else:
        message = "Location verified"

    return RiskAssessment(
        registered_country=registered,
        risk_score=max(0, min(MAX_SCORE, risk_score)),
        flags=frozenset(flags),
        verified=verified,
        detected_country=detected,
        ip_address=signal.ip,
        message=message,
    )


async def verify_location(
    ip_address: Optional[str],
    registered_country: str,
    phone_country: Optional[str] = None,
    resolver: Optional[IpCountryResolver] = None,
) -> RiskAssessment:
    """Collect the IP signal and score it.

    A resolver that raises is treated like one that timed out: the signal is
    unavailable and scoring carries on with ``geolocation_unavailable``.
    """
    if resolver is None:
        resolver = IpCountryResolver()
    try:
        signal = await resolver.resolve(ip_address)
    except SignalUnavailable as e:
        logger.warning(f"[RiskEngine] IP signal unavailable for {ip_address}: {e.message}")
        signal = IpSignal(ip=ip_address, error="geolocation_unavailable")
    except Exception:
        logger.exception(f"[RiskEngine] IP resolver failed for {ip_address}")
        signal = IpSignal(ip=ip_address, error="geolocation_unavailable")
    return score_location(signal, registered_country, phone_country)
