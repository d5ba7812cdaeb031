from types import SimpleNamespace

import pytest
import requests
import urllib3

import link_health
from link_health import extract_links, find_first_broken_link, is_broken_status


def test_extract_links_keeps_order_and_duplicates():
    text = "see https://a.example/x and http://b.example/y?q=1#frag then https://a.example/x"

    assert extract_links(text) == [
        "https://a.example/x",
        "http://b.example/y?q=1#frag",
        "https://a.example/x",
    ]


def test_extract_links_stops_at_quotes_brackets_and_whitespace():
    text = (
        '<a href="https://quoted.example/page">x</a> '
        "[link](https://md.example/path) "
        "[https://bbcode.example/img] "
        "'https://single.example/a'"
    )

    assert extract_links(text) == [
        "https://quoted.example/page",
        "https://md.example/path)",
        "https://bbcode.example/img",
        "https://single.example/a",
    ]


def test_extract_links_ignores_other_schemes_and_none():
    assert extract_links("ftp://files.example/a mailto:me@example.com www.example.com") == []
    assert extract_links(None) == []


@pytest.mark.parametrize(
    "status,expected",
    [(404, True), (500, True), (200, False), (301, False), (403, False), (410, False), (503, False)],
)
def test_only_404_and_500_are_broken(status, expected):
    assert is_broken_status(status) is expected


def test_check_link_status_sends_head_to_path_without_query(monkeypatch):
    calls = []

    def fake_head(url, **kwargs):
        calls.append((url, kwargs))
        return SimpleNamespace(status_code=204)

    monkeypatch.setattr(link_health.requests, "head", fake_head)

    status = link_health.check_link_status("https://example.com:8443/docs/page?ref=mail#top", timeout=5)

    assert status == 204
    url, kwargs = calls[0]
    assert url == "https://example.com:8443/docs/page"
    assert kwargs["timeout"] == (5, 5)
    assert kwargs["allow_redirects"] is False


def test_check_link_status_requests_root_for_bare_host(monkeypatch):
    calls = []
    monkeypatch.setattr(
        link_health.requests,
        "head",
        lambda url, **kwargs: calls.append(url) or SimpleNamespace(status_code=200),
    )

    assert link_health.check_link_status("http://example.com") == 200
    assert calls == ["http://example.com/"]


def test_check_link_status_uses_configured_timeout(monkeypatch):
    seen = {}

    def fake_head(url, **kwargs):
        seen.update(kwargs)
        return SimpleNamespace(status_code=200)

    monkeypatch.setattr(link_health.requests, "head", fake_head)
    monkeypatch.setattr(link_health.config, "LINK_CHECK_TIMEOUT", 2.5, raising=False)

    link_health.check_link_status("https://example.com/")
    assert seen["timeout"] == (2.5, 2.5)


@pytest.mark.parametrize(
    "error",
    [
        requests.ConnectTimeout("timed out"),
        requests.ReadTimeout("read timed out"),
        requests.ConnectionError("name or service not known"),
        requests.exceptions.SSLError("bad certificate"),
        requests.exceptions.InvalidURL("no host"),
        urllib3.exceptions.LocationParseError("label empty or too long"),
    ],
)
def test_transport_errors_report_500(monkeypatch, error):
    def failing_head(url, **kwargs):
        raise error

    monkeypatch.setattr(link_health.requests, "head", failing_head)

    assert link_health.check_link_status("https://unreachable.example/") == 500


def test_find_first_broken_link_short_circuits():
    statuses = {
        "https://ok.example/": 200,
        "https://gone.example/": 404,
        "https://never.example/": 200,
    }
    probed = []

    def checker(url):
        probed.append(url)
        return statuses[url]

    result = find_first_broken_link(list(statuses), checker)

    assert result == ("https://gone.example/", 404)
    assert probed == ["https://ok.example/", "https://gone.example/"]


def test_find_first_broken_link_returns_none_when_all_alive():
    probed = []

    def checker(url):
        probed.append(url)
        return 403

    assert find_first_broken_link(["https://a.example/", "https://b.example/"], checker) is None
    assert len(probed) == 2
