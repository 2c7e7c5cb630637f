"""Tests for the poster probe using httpx.MockTransport."""

import httpx
import pytest
from catalog_trust.models.subject import Subject
from catalog_trust.services.image_probe import ImageProbe


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/ok.jpg":
        return httpx.Response(200)
    if path == "/head-not-allowed.jpg":
        return httpx.Response(405) if request.method == "HEAD" else httpx.Response(200)
    if path == "/slow.jpg":
        raise httpx.ReadTimeout("timed out", request=request)
    if path == "/refused.jpg":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404)


@pytest.fixture
def probe():
    with ImageProbe(timeout=1.0, max_workers=2, transport=httpx.MockTransport(_handler)) as image_probe:
        yield image_probe


class TestProbe:
    def test_reachable(self, probe):
        result = probe.probe("https://images.example.org/ok.jpg")
        assert result.reachable
        assert result.status_code == 200
        assert result.error is None

    def test_falls_back_to_get_on_405(self, probe):
        result = probe.probe("https://images.example.org/head-not-allowed.jpg")
        assert result.reachable
        assert result.status_code == 200

    def test_missing_image(self, probe):
        result = probe.probe("https://images.example.org/gone.jpg")
        assert not result.reachable
        assert result.error == "HTTP 404"

    def test_timeout(self, probe):
        result = probe.probe("https://images.example.org/slow.jpg")
        assert not result.reachable
        assert result.error.startswith("Timeout")

    def test_connection_error(self, probe):
        result = probe.probe("https://images.example.org/refused.jpg")
        assert not result.reachable
        assert "ConnectError" in result.error


class TestProbeSubjects:
    def test_only_subjects_with_posters_are_probed(self, probe):
        subjects = [
            Subject(id="a", poster_url="https://images.example.org/ok.jpg"),
            Subject(id="b", poster_url="https://images.example.org/gone.jpg"),
            Subject(id="c", poster_url="https://images.example.org/slow.jpg"),
            Subject(id="d"),
        ]
        assert probe.probe_subjects(subjects) == {"a": True, "b": False, "c": False}

    def test_no_posters(self, probe):
        assert probe.probe_subjects([Subject(id="a")]) == {}

    def test_close_is_idempotent(self):
        image_probe = ImageProbe(transport=httpx.MockTransport(_handler))
        image_probe.probe("https://images.example.org/ok.jpg")
        image_probe.close()
        image_probe.close()
        assert image_probe._client is None
