"""
Device fingerprint extraction from request headers.

Turns the ``User-Agent`` header and the ``Sec-CH-UA-*`` client hints into a
coarse :class:`Fingerprint` (display name, device class, OS family), and
picks the caller's IP from the proxy header chain. Both functions are pure:
they only look at the headers and peer address they are given and never
raise on malformed input.
"""

import re
from dataclasses import dataclass
from ipaddress import ip_address as parse_ip
from typing import Mapping, Optional

from models.device import DeviceClass, OsFamily

UNKNOWN_NAME = "Unknown"
# Real user agents stay well under this; longer values are cut before parsing
MAX_USER_AGENT_LENGTH = 512

# Header precedence for the caller IP: trusted proxy first, then the
# forwarded-for chain, then the transport peer.
CONNECTING_IP_HEADER = "cf-connecting-ip"
FORWARDED_FOR_HEADER = "x-forwarded-for"


@dataclass(frozen=True)
class Fingerprint:
    """Coarse device identity derived from one request."""

    name: str
    device_class: DeviceClass
    os_family: OsFamily


@dataclass
class ParsedUserAgent:
    raw: str = ""
    browser: Optional[str] = None
    os: Optional[str] = None
    model: Optional[str] = None
    is_mobile: bool = False


class UserAgentParser:
    """
    Regex-based user agent parser with client-hint overrides.

    Only the fields needed for fingerprinting are extracted: browser name,
    OS name, device model, and whether the device reports itself as mobile.
    """

    # Order matters: more specific tokens must come before the engines
    # they embed (Edge and Opera both contain "Chrome/", Chrome contains
    # "Safari/").
    BROWSER_PATTERNS = [
        (r"\bEdg(?:e|A|iOS)?/", "Edge"),
        (r"\bOPR/|\bOPiOS/|\bOpera\b", "Opera"),
        (r"\bSamsungBrowser/", "Samsung Internet"),
        (r"\bLine/", "Line"),
        (r"\bFBAN/|\bFBAV/", "Facebook"),
        (r"\bInstagram\b", "Instagram"),
        (r"\bFirefox/|\bFxiOS/", "Firefox"),
        (r"\bChromium/", "Chromium"),
        (r"\bCriOS/|\bChrome/", "Chrome"),
        (r"\bVersion/[\d.]+.*\bSafari/", "Safari"),
        (r"\bMobile/\w+ Safari/|\bMobile Safari/", "Safari"),
    ]

    # iOS must be checked before macOS: iPhone UAs contain "like Mac OS X".
    OS_PATTERNS = [
        (r"\b(?:iPhone|iPad|iPod)\b|\biOS\b|\bCPU (?:iPhone )?OS \d", "iOS"),
        (r"\bAndroid\b", "Android"),
        (r"\bWindows (?:NT|Phone)\b", "Windows"),
        (r"\bCrOS\b", "Chrome OS"),
        (r"\bMac OS X\b|\bMacintosh\b", "macOS"),
        (r"\bLinux\b", "Linux"),
    ]

    MOBILE_PATTERNS = [
        r"\bMobile\b",
        r"\biPhone\b",
        r"\biPod\b",
        r"\bAndroid.*\bMobile\b",
        r"\bWindows Phone\b",
    ]

    APPLE_MODEL_RE = re.compile(r"\b(iPhone|iPad|iPod)\b")
    # Optional locale token ("zh-tw; ") sits between the version and model
    # on older Android builds.
    ANDROID_MODEL_RE = re.compile(
        r"\bAndroid(?: [\d.]+)?; (?:[a-z]{2}[-_][a-zA-Z]{2}; )?([^;)]+?)(?: Build/[^;)]*)?[;)]"
    )

    # Placeholders that are not real models: "K" is Chrome's reduced UA,
    # "wv" marks a WebView, "U" is a legacy security token.
    _MODEL_PLACEHOLDERS = {"K", "wv", "U", "Linux", "Mobile"}

    def parse(self, user_agent: str) -> ParsedUserAgent:
        """Parse a user agent string."""
        if not user_agent:
            return ParsedUserAgent(raw="")

        user_agent = user_agent[:MAX_USER_AGENT_LENGTH]
        result = ParsedUserAgent(raw=user_agent)

        for pattern, name in self.BROWSER_PATTERNS:
            if re.search(pattern, user_agent):
                result.browser = name
                break

        for pattern, name in self.OS_PATTERNS:
            if re.search(pattern, user_agent):
                result.os = name
                break

        result.model = self._parse_model(user_agent)
        result.is_mobile = any(re.search(p, user_agent) for p in self.MOBILE_PATTERNS)
        return result

    def _parse_model(self, user_agent: str) -> Optional[str]:
        match = self.APPLE_MODEL_RE.search(user_agent)
        if match:
            return match.group(1)

        match = self.ANDROID_MODEL_RE.search(user_agent)
        if match:
            model = match.group(1).strip()
            if model and model not in self._MODEL_PLACEHOLDERS:
                return model
        return None

    def apply_client_hints(
        self, parsed: ParsedUserAgent, headers: Mapping[str, str]
    ) -> ParsedUserAgent:
        """Override UA-derived fields with any ``Sec-CH-UA-*`` hints present."""
        model = _unquote(headers.get("sec-ch-ua-model"))
        if model:
            parsed.model = model

        platform = _unquote(headers.get("sec-ch-ua-platform"))
        if platform:
            parsed.os = platform

        mobile = headers.get("sec-ch-ua-mobile")
        if mobile is not None:
            parsed.is_mobile = mobile.strip() == "?1"

        brand = _primary_brand(headers.get("sec-ch-ua"))
        if brand and not parsed.browser:
            parsed.browser = brand

        return parsed


def _unquote(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip().strip('"').strip() or None


_BRAND_RE = re.compile(r'"([^"]+)"\s*;\s*v="[^"]*"')


def _primary_brand(value: Optional[str]) -> Optional[str]:
    """Pick the real browser brand out of a ``Sec-CH-UA`` list."""
    if not value:
        return None
    brands = [b for b in _BRAND_RE.findall(value) if "brand" not in b.lower()]
    # "Chromium" is listed alongside the actual Chromium-based browser
    specific = [b for b in brands if b != "Chromium"]
    if specific:
        brand = specific[0]
        return "Chrome" if brand == "Google Chrome" else brand.replace("Microsoft ", "")
    return brands[0] if brands else None


_parser = UserAgentParser()


def _normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(k).lower(): str(v) for k, v in headers.items()}


def extract_fingerprint(headers: Mapping[str, str]) -> Fingerprint:
    """
    Derive the device fingerprint for a request.

    name:         device model, else browser, else OS, else ``"Unknown"``
    device_class: Browser if a browser is recognised, else Mobile if the
                  device reports itself as mobile, else Unknown
    os_family:    iOS / Android / Unknown
    """
    normalized = _normalize_headers(headers)
    parsed = _parser.parse(normalized.get("user-agent", ""))
    parsed = _parser.apply_client_hints(parsed, normalized)

    name = parsed.model or parsed.browser or parsed.os or UNKNOWN_NAME

    if parsed.browser:
        device_class = DeviceClass.Browser
    elif parsed.is_mobile:
        device_class = DeviceClass.Mobile
    else:
        device_class = DeviceClass.Unknown

    if parsed.os == "iOS":
        os_family = OsFamily.iOS
    elif parsed.os == "Android":
        os_family = OsFamily.Android
    else:
        os_family = OsFamily.Unknown

    return Fingerprint(name=name, device_class=device_class, os_family=os_family)


def extract_ip(headers: Mapping[str, str], peer_ip: Optional[str] = None) -> Optional[str]:
    """
    Best-effort caller IP.

    The first available source wins; if its value is not a valid IPv4/IPv6
    address the result is ``None`` rather than falling through.
    """
    normalized = _normalize_headers(headers)

    candidate = normalized.get(CONNECTING_IP_HEADER)
    if not candidate:
        forwarded = normalized.get(FORWARDED_FOR_HEADER)
        if forwarded:
            # Left-most entry is the original client
            candidate = forwarded.split(",")[0]
    if not candidate:
        candidate = peer_ip

    if not candidate:
        return None

    try:
        return str(parse_ip(candidate.strip()))
    except ValueError:
        return None
