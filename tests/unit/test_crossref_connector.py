from __future__ import annotations

import pytest
import requests

from deptcms.infrastructure.connectors.crossref_connector import CrossrefConnector


class _DummyResponse:
    def __init__(self, payload, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def _patch_get(monkeypatch, fake):
    monkeypatch.setattr(
        "deptcms.infrastructure.connectors.crossref_connector.requests.get", fake
    )


def test_get_work_returns_message(monkeypatch):
    calls = []

    def _fake_get(url, headers, params=None, timeout=0):
        calls.append({"url": url, "headers": headers, "timeout": timeout})
        return _DummyResponse({"status": "ok", "message": {"title": ["Reading Rushdie"]}})

    _patch_get(monkeypatch, _fake_get)

    connector = CrossrefConnector(base_url="https://crossref.test/", mailto="library@aiesr.edu")
    work = connector.get_work("https://doi.org/10.1093/RES/HGZ001")

    assert work == {"title": ["Reading Rushdie"]}
    assert calls[0]["url"] == "https://crossref.test/works/10.1093/res/hgz001"
    assert calls[0]["headers"]["User-Agent"] == "deptcms/1.0 (mailto:library@aiesr.edu)"
    assert calls[0]["timeout"] == 15.0


def test_get_work_skips_request_for_malformed_doi(monkeypatch):
    def _fake_get(*args, **kwargs):
        raise AssertionError("no request expected")

    _patch_get(monkeypatch, _fake_get)

    assert CrossrefConnector().get_work("not a doi") is None


def test_get_work_returns_none_for_unknown_doi(monkeypatch):
    _patch_get(monkeypatch, lambda url, headers, timeout=0: _DummyResponse({}, status_code=404))

    assert CrossrefConnector().get_work("10.1000/missing") is None


def test_get_work_raises_on_server_error(monkeypatch):
    _patch_get(monkeypatch, lambda url, headers, timeout=0: _DummyResponse({}, status_code=503))

    with pytest.raises(requests.HTTPError):
        CrossrefConnector().get_work("10.1000/xyz")


def test_get_work_ignores_unexpected_payload(monkeypatch):
    _patch_get(monkeypatch, lambda url, headers, timeout=0: _DummyResponse({"message": "oops"}))

    assert CrossrefConnector().get_work("10.1000/xyz") is None


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv("DEPTCMS_CROSSREF_URL", "https://mirror.example.org/")
    monkeypatch.delenv("DEPTCMS_CROSSREF_MAILTO", raising=False)

    connector = CrossrefConnector()

    assert connector.base_url == "https://mirror.example.org"
    assert connector._headers["User-Agent"] == "deptcms/1.0"
