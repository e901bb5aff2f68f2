"""Best-effort device identity derived from request metadata.

Two observations are the same device iff their fingerprints are equal. The
server-side fingerprint (IP + user agent) is coarse: NAT and shared proxies
collapse devices, a changed IP splits one. A client-supplied fingerprint, when
present, replaces it.
"""
import hashlib
import ipaddress
import re
from dataclasses import dataclass
from datetime import datetime

from flask import request

from utils import clock

FINGERPRINT_HEADER = "X-Device-Fingerprint"
FINGERPRINT_LENGTH = 32

_MAC_VERSION = re.compile(r"mac os x ([\d_]+)")


@dataclass(frozen=True)
class DeviceIdentity:
    fingerprint: str
    owner_label: str
    ip_address: str
    user_agent: str


def client_ip() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return request.remote_addr or "unknown"


def client_user_agent() -> str:
    return (request.headers.get("User-Agent") or "")[:255]


def client_fingerprint(body: dict | None = None) -> str | None:
    value = None
    if body:
        value = body.get("device_fingerprint")
    if not value:
        value = request.headers.get(FINGERPRINT_HEADER)
    if not isinstance(value, str):
        return None
    return value.strip()[:128] or None


def compute_fingerprint(ip: str | None, user_agent: str | None, client_value: str | None = None) -> str:
    if client_value and client_value.strip():
        return client_value.strip()
    data = f"{ip or 'unknown'}:{user_agent or 'unknown'}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def is_same_device(fingerprint_a: str | None, fingerprint_b: str | None) -> bool:
    if not fingerprint_a or not fingerprint_b:
        return False
    return fingerprint_a == fingerprint_b


def parse_os(user_agent: str | None) -> str:
    if not user_agent:
        return "Unknown OS"
    ua = user_agent.lower()

    if "windows nt 10.0" in ua:
        return "Windows 10"
    if "windows nt 6.3" in ua:
        return "Windows 8.1"
    if "windows nt 6.2" in ua:
        return "Windows 8"
    if "windows nt 6.1" in ua:
        return "Windows 7"
    if "windows" in ua:
        return "Windows"
    # iOS user agents also say "like mac os x"
    if "iphone" in ua:
        return "iOS (iPhone)"
    if "ipad" in ua:
        return "iOS (iPad)"
    if "mac os x" in ua:
        match = _MAC_VERSION.search(ua)
        if match:
            return "macOS " + match.group(1).replace("_", ".")
        return "macOS"
    if "android" in ua:
        return "Android"
    if "linux" in ua:
        return "Linux"
    return "Unknown OS"


def parse_browser(user_agent: str | None) -> str:
    if not user_agent:
        return "Unknown Browser"
    ua = user_agent.lower()

    # most specific first: Edge and Opera also announce Chrome
    if "edg/" in ua:
        return "Edge"
    if "opr/" in ua or "opera" in ua:
        return "Opera"
    if "chrome/" in ua:
        return "Chrome"
    if "safari/" in ua and "chrome" not in ua:
        return "Safari"
    if "firefox/" in ua:
        return "Firefox"
    if "msie" in ua or "trident/" in ua:
        return "Internet Explorer"
    return "Unknown Browser"


def coarse_location(ip: str | None) -> str | None:
    """Loopback/private detection only; no external geolocation lookup."""
    if not ip or ip == "unknown":
        return "Localhost"
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return None
    if addr.is_loopback:
        return "Localhost"
    if addr.is_private:
        return "Local Network"
    return None


def owner_label(user_agent: str | None, ip: str | None, at: datetime | None = None) -> str:
    at = at or clock.now()
    label = f"{parse_os(user_agent)} - {parse_browser(user_agent)} at {at.strftime('%Y-%m-%d %H:%M')}"
    location = coarse_location(ip)
    if location:
        label += f" - {location}"
    return label[:255]


def identify_device(ip: str | None, user_agent: str | None,
                    client_value: str | None = None, at: datetime | None = None) -> DeviceIdentity:
    return DeviceIdentity(
        fingerprint=compute_fingerprint(ip, user_agent, client_value),
        owner_label=owner_label(user_agent, ip, at),
        ip_address=ip or "unknown",
        user_agent=user_agent or "",
    )


def identify_request_device(body: dict | None = None) -> DeviceIdentity:
    return identify_device(client_ip(), client_user_agent(), client_fingerprint(body))
