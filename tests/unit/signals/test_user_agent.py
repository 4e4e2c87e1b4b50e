"""Tests for user-agent signal extraction."""

import pytest

from authsentry.signals.signatures import BROWSER_SIGNATURES, OS_SIGNATURES
from authsentry.signals.user_agent import (
    UserAgentProfile,
    agent_family,
    classify,
    is_bot,
    is_suspicious_agent,
    similar_agents,
)


CHROME_WINDOWS = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
EDGE_WINDOWS = CHROME_WINDOWS + " Edg/120.0.2210.91"
SAFARI_MAC = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/605.1.15 Version/17.2 Safari/605.1.15"
FIREFOX_LINUX = "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
CHROME_ANDROID = "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36"
SAFARI_IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 Version/17.2 Mobile/15E148 Safari/604.1"
GOOGLEBOT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class TestClassify:
    """Tests for browser, OS and device classification."""

    def test_chrome_on_windows(self):
        profile = classify(CHROME_WINDOWS)

        assert profile.browser == "Chrome"
        assert profile.os == "Windows"
        assert profile.device_type == "Desktop"
        assert profile.is_mobile is False
        assert profile.is_bot is False

    def test_edge_wins_over_chrome(self):
        """Edge agents carry a Chrome token too."""
        assert classify(EDGE_WINDOWS).browser == "Edge"

    def test_safari_on_mac(self):
        profile = classify(SAFARI_MAC)

        assert profile.browser == "Safari"
        assert profile.os == "macOS"

    def test_firefox_on_linux(self):
        profile = classify(FIREFOX_LINUX)

        assert profile.browser == "Firefox"
        assert profile.os == "Linux"

    def test_android_wins_over_linux(self):
        profile = classify(CHROME_ANDROID)

        assert profile.os == "Android"
        assert profile.device_type == "Mobile"
        assert profile.is_mobile is True

    def test_iphone_wins_over_mac(self):
        profile = classify(SAFARI_IPHONE)

        assert profile.os == "iOS"
        assert profile.browser == "Safari"
        assert profile.is_mobile is True

    def test_specific_tokens_precede_the_ones_they_contain(self):
        """Edge before Chrome before Safari; mobile platforms before desktop ones."""
        browsers = [label for _, label in BROWSER_SIGNATURES]
        systems = [label for _, label in OS_SIGNATURES]

        assert browsers == ["Edge", "Chrome", "Firefox", "Safari"]
        assert systems == ["Android", "iOS", "Windows", "macOS", "Linux"]

    @pytest.mark.parametrize("user_agent", ["", "   "])
    def test_blank_agent_is_unknown(self, user_agent):
        """Blank input never raises and never counts as a bot."""
        profile = classify(user_agent)

        assert profile == UserAgentProfile()
        assert profile.browser == "Unknown"
        assert profile.os == "Unknown"
        assert profile.is_bot is False

    def test_unrecognized_agent(self):
        profile = classify("SomeClient/1.0")

        assert profile.browser == "Unknown"
        assert profile.os == "Unknown"
        assert profile.device_type == "Desktop"

    def test_bot_flag(self):
        assert classify(GOOGLEBOT).is_bot is True


class TestSuspiciousAgents:
    """Tests for bot and automation detection."""

    @pytest.mark.parametrize("user_agent", [
        GOOGLEBOT,
        "AhrefsBot/7.0",
        "Mozilla/5.0 (compatible; SomeCrawler/1.0)",
        "Spider-Agent",
        "MyScraper",
    ])
    def test_bots(self, user_agent):
        assert is_bot(user_agent) is True
        assert is_suspicious_agent(user_agent) is True

    @pytest.mark.parametrize("user_agent", [
        "curl/8.4.0",
        "Wget/1.21.4",
        "python-requests/2.31.0",
        "Java/17.0.2",
    ])
    def test_scripted_clients(self, user_agent):
        assert is_bot(user_agent) is False
        assert is_suspicious_agent(user_agent) is True

    @pytest.mark.parametrize("user_agent", [CHROME_WINDOWS, SAFARI_MAC, ""])
    def test_browsers_are_not_suspicious(self, user_agent):
        assert is_suspicious_agent(user_agent) is False


class TestAgentSimilarity:
    """Tests for coarse agent similarity."""

    def test_family_is_first_token(self):
        assert agent_family(CHROME_WINDOWS) == "Mozilla/5.0"
        assert agent_family("curl/8.4.0") == "curl/8.4.0"

    def test_empty_family(self):
        assert agent_family("") == ""

    def test_browsers_share_a_family(self):
        assert similar_agents(CHROME_WINDOWS, SAFARI_MAC) is True

    def test_scripted_client_differs(self):
        assert similar_agents(CHROME_WINDOWS, "curl/8.4.0") is False
