"""
Tests for device fingerprint and caller IP extraction.

Covers:
- User-Agent parsing for common mobile and desktop browsers
- Client hint precedence over the User-Agent string
- Unknown defaults for missing or garbage headers
- IP precedence: CF-Connecting-IP > X-Forwarded-For > peer address
"""

from models.device import DeviceClass, OsFamily
from services.fingerprint import (
    MAX_USER_AGENT_LENGTH,
    UserAgentParser,
    extract_fingerprint,
    extract_ip,
)

IPHONE_SAFARI_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1"
)
ANDROID_CHROME_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36"
)
ANDROID_WEBVIEW_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-G991B Build/TP1A.220624.014; wv) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Version/4.0 Chrome/120.0.0.0 "
    "Mobile Safari/537.36"
)
REDUCED_ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Mobile Safari/537.36"
)
WINDOWS_EDGE_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.2478.51"
)
MAC_FIREFOX_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:125.0) Gecko/20100101 Firefox/125.0"
)


class TestUserAgentParser:
    """Regex user agent parsing."""

    def test_iphone_safari(self):
        parsed = UserAgentParser().parse(IPHONE_SAFARI_UA)
        assert parsed.browser == "Safari"
        assert parsed.os == "iOS"
        assert parsed.model == "iPhone"
        assert parsed.is_mobile is True

    def test_edge_is_not_reported_as_chrome(self):
        parsed = UserAgentParser().parse(WINDOWS_EDGE_UA)
        assert parsed.browser == "Edge"
        assert parsed.os == "Windows"
        assert parsed.is_mobile is False

    def test_android_model_before_build_token(self):
        parsed = UserAgentParser().parse(ANDROID_WEBVIEW_UA)
        assert parsed.model == "SM-G991B"
        assert parsed.os == "Android"

    def test_reduced_user_agent_has_no_model(self):
        """Chrome's frozen "K" placeholder is not a device model."""
        parsed = UserAgentParser().parse(REDUCED_ANDROID_UA)
        assert parsed.model is None
        assert parsed.browser == "Chrome"

    def test_empty_string(self):
        parsed = UserAgentParser().parse("")
        assert parsed.browser is None
        assert parsed.os is None
        assert parsed.model is None
        assert parsed.is_mobile is False

    def test_oversized_user_agent_is_cut(self):
        parsed = UserAgentParser().parse(IPHONE_SAFARI_UA + " x" * 8000)
        assert len(parsed.raw) == MAX_USER_AGENT_LENGTH
        assert parsed.browser == "Safari"
        assert parsed.model == "iPhone"

    def test_tokens_past_the_cut_are_ignored(self):
        user_agent = "Android Version/1 " + "a" * MAX_USER_AGENT_LENGTH + " Safari/1 Mobile"
        parsed = UserAgentParser().parse(user_agent)
        assert parsed.os == "Android"
        assert parsed.browser is None
        assert parsed.is_mobile is False


class TestExtractFingerprint:
    """Fingerprint derivation from request headers."""

    def test_iphone_safari(self):
        fp = extract_fingerprint({"User-Agent": IPHONE_SAFARI_UA})
        assert fp.name == "iPhone"
        assert fp.device_class == DeviceClass.Browser
        assert fp.os_family == OsFamily.iOS

    def test_android_chrome(self):
        fp = extract_fingerprint({"User-Agent": ANDROID_CHROME_UA})
        assert fp.name == "Pixel 8"
        assert fp.device_class == DeviceClass.Browser
        assert fp.os_family == OsFamily.Android

    def test_desktop_falls_back_to_browser_name(self):
        fp = extract_fingerprint({"User-Agent": MAC_FIREFOX_UA})
        assert fp.name == "Firefox"
        assert fp.device_class == DeviceClass.Browser
        assert fp.os_family == OsFamily.Unknown

    def test_header_lookup_is_case_insensitive(self):
        lower = extract_fingerprint({"user-agent": IPHONE_SAFARI_UA})
        upper = extract_fingerprint({"USER-AGENT": IPHONE_SAFARI_UA})
        assert lower == upper

    def test_missing_headers_give_unknown_defaults(self):
        fp = extract_fingerprint({})
        assert fp.name == "Unknown"
        assert fp.device_class == DeviceClass.Unknown
        assert fp.os_family == OsFamily.Unknown

    def test_garbage_user_agent_gives_unknown_defaults(self):
        fp = extract_fingerprint({"User-Agent": "\x00\x01 not a browser ;;;"})
        assert fp.name == "Unknown"
        assert fp.device_class == DeviceClass.Unknown
        assert fp.os_family == OsFamily.Unknown

    def test_mobile_app_without_browser(self):
        """A native client that only says it is mobile is classed Mobile."""
        fp = extract_fingerprint({"User-Agent": "MembershipApp/2.1 (Android 14; Mobile)"})
        assert fp.device_class == DeviceClass.Mobile
        assert fp.os_family == OsFamily.Android

    def test_client_hints_take_precedence(self):
        headers = {
            "User-Agent": REDUCED_ANDROID_UA,
            "Sec-CH-UA": '"Chromium";v="124", "Google Chrome";v="124", "Not-A.Brand";v="99"',
            "Sec-CH-UA-Mobile": "?1",
            "Sec-CH-UA-Platform": '"Android"',
            "Sec-CH-UA-Model": '"Pixel 7a"',
        }
        fp = extract_fingerprint(headers)
        assert fp.name == "Pixel 7a"
        assert fp.device_class == DeviceClass.Browser
        assert fp.os_family == OsFamily.Android

    def test_client_hint_platform_overrides_user_agent(self):
        headers = {"User-Agent": ANDROID_CHROME_UA, "Sec-CH-UA-Platform": '"iOS"'}
        assert extract_fingerprint(headers).os_family == OsFamily.iOS

    def test_brand_hint_used_when_user_agent_has_no_browser(self):
        headers = {
            "Sec-CH-UA": '"Not_A Brand";v="8", "Chromium";v="120", "Microsoft Edge";v="120"',
        }
        fp = extract_fingerprint(headers)
        assert fp.name == "Edge"
        assert fp.device_class == DeviceClass.Browser


class TestExtractIp:
    """Caller IP precedence and validation."""

    def test_cf_connecting_ip_wins(self):
        headers = {"CF-Connecting-IP": "203.0.113.7", "X-Forwarded-For": "198.51.100.1"}
        assert extract_ip(headers, "10.0.0.1") == "203.0.113.7"

    def test_first_forwarded_for_entry(self):
        headers = {"X-Forwarded-For": "198.51.100.1, 10.0.0.2, 10.0.0.3"}
        assert extract_ip(headers, "10.0.0.1") == "198.51.100.1"

    def test_peer_address_fallback(self):
        assert extract_ip({}, "192.0.2.10") == "192.0.2.10"

    def test_ipv6_is_normalized(self):
        assert extract_ip({"CF-Connecting-IP": "2001:DB8:0:0::1"}) == "2001:db8::1"

    def test_invalid_value_gives_none(self):
        assert extract_ip({"CF-Connecting-IP": "not-an-ip"}, "192.0.2.10") is None

    def test_nothing_available(self):
        assert extract_ip({}, None) is None
