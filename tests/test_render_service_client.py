import pytest

from creative_factory.config import settings
from creative_factory.services.render_service_client import (
    RenderServiceClient,
    RenderServiceConfigError,
    RenderServiceRequestError,
)


def _client() -> RenderServiceClient:
    return RenderServiceClient(base_url="https://render.example.test/v1", api_key="key")


def test_missing_api_key_is_a_config_error(monkeypatch):
    monkeypatch.setattr(settings, "RENDER_SERVICE_API_KEY", None)

    with pytest.raises(RenderServiceConfigError):
        RenderServiceClient(base_url="https://render.example.test/v1")


def test_submit_accepts_list_and_id_payloads(monkeypatch):
    client = _client()
    calls = []

    def _request(method, path, *, json_payload=None):
        calls.append((method, path, json_payload))
        return [{"id": "r-1", "status": "planned"}]

    monkeypatch.setattr(client, "_request_json", _request)

    assert client.submit({"output_format": "mp4"}) == "r-1"
    assert calls == [("POST", "/renders", {"source": {"output_format": "mp4"}})]


def test_submit_with_empty_list_is_an_error(monkeypatch):
    client = _client()
    monkeypatch.setattr(client, "_request_json", lambda *args, **kwargs: [])

    with pytest.raises(RenderServiceRequestError):
        client.submit({})


@pytest.mark.parametrize(
    "provider_status,expected",
    [
        ("planned", "pending"),
        ("rendering", "processing"),
        ("succeeded", "done"),
        ("failed", "failed"),
    ],
)
def test_poll_normalizes_provider_statuses(monkeypatch, provider_status, expected):
    client = _client()
    monkeypatch.setattr(
        client,
        "_request_json",
        lambda *args, **kwargs: {"id": "r-1", "status": provider_status, "url": "https://cdn.example.test/r-1.mp4"},
    )

    assert client.poll("r-1").status == expected


def test_poll_unknown_status_is_an_error(monkeypatch):
    client = _client()
    monkeypatch.setattr(client, "_request_json", lambda *args, **kwargs: {"status": "teleporting"})

    with pytest.raises(RenderServiceRequestError):
        client.poll("r-1")


def test_request_error_str_includes_status():
    assert str(RenderServiceRequestError("Render service request failed (502)", status_code=502)) == (
        "Render service request failed (502) status=502"
    )
