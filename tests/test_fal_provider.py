"""Tests for the fal.ai provider, run against an in-memory client."""
import fal_client
import pytest

from error_messages import friendly_error_message
from fal_provider import FalTryOnProvider, format_queue_update, resolve_api_key
from tryon_provider import (
    ProviderAPIError,
    ProviderConfig,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderUploadError,
    TryOnOptions,
    TryOnRequest,
)


class _HTTPError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class FakeSyncClient:
    """Stands in for fal_client.SyncClient."""

    def __init__(self, response=None, upload_error=None, subscribe_error=None,
                 updates=()):
        self.response = response if response is not None else {
            "images": [{"url": "https://fal.media/out-1.png"}],
            "request_id": "req-123",
        }
        self.upload_error = upload_error
        self.subscribe_error = subscribe_error
        self.updates = list(updates)
        self.uploads = []
        self.calls = []

    def upload_file(self, path):
        if self.upload_error is not None:
            raise self.upload_error
        self.uploads.append(path)
        return f"https://fal.media/files/{len(self.uploads)}.png"

    def subscribe(self, application, arguments, *, with_logs=False,
                  on_queue_update=None, **kwargs):
        self.calls.append({
            "application": application,
            "arguments": arguments,
            "with_logs": with_logs,
        })
        for update in self.updates:
            on_queue_update(update)
        if self.subscribe_error is not None:
            raise self.subscribe_error
        return self.response


def _provider(client):
    return FalTryOnProvider(ProviderConfig(api_key="k"), client=client)


def _request():
    return TryOnRequest(
        model_image_url="https://fal.media/files/1.png",
        garment_image_url="https://fal.media/files/2.png",
        options=TryOnOptions(seed=9),
    )


# ---------------------------------------------------------------------------
# API key resolution
# ---------------------------------------------------------------------------

def test_resolve_api_key_precedence(monkeypatch):
    monkeypatch.setenv("FAL_KEY", "from-env")
    monkeypatch.setenv("FAL_API_KEY", "from-alt-env")
    assert resolve_api_key("  explicit ") == "explicit"
    assert resolve_api_key("") == "from-env"
    monkeypatch.delenv("FAL_KEY")
    assert resolve_api_key(None) == "from-alt-env"
    monkeypatch.delenv("FAL_API_KEY")
    assert resolve_api_key(None) == ""


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

def test_upload_returns_hosted_url(png_file):
    client = FakeSyncClient()
    assert _provider(client).upload_image(png_file) == "https://fal.media/files/1.png"
    assert client.uploads == [png_file]


def test_upload_missing_file(tmp_path):
    with pytest.raises(ProviderError, match="not found"):
        _provider(FakeSyncClient()).upload_image(str(tmp_path / "nope.png"))


def test_upload_missing_file_message_omits_path(tmp_path):
    missing = str(tmp_path / "uploads" / "oversized_ab12.png")
    with pytest.raises(ProviderError) as info:
        _provider(FakeSyncClient()).upload_image(missing)
    assert "oversized" not in str(info.value)
    assert friendly_error_message(info.value) == "Image file not found"


def test_upload_failure_is_wrapped(png_file):
    client = FakeSyncClient(upload_error=RuntimeError("connection reset"))
    with pytest.raises(ProviderUploadError, match="Failed to upload image to FAL storage") as info:
        _provider(client).upload_image(png_file)
    assert isinstance(info.value.__cause__, RuntimeError)


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def test_submit_sends_arguments_with_logs():
    client = FakeSyncClient()
    result = _provider(client).submit(_request())

    call = client.calls[0]
    assert call["application"] == "fashn/tryon"
    assert call["with_logs"] is True
    assert call["arguments"]["seed"] == 9
    assert call["arguments"]["model_image"] == "https://fal.media/files/1.png"
    assert result.image_urls == ["https://fal.media/out-1.png"]
    assert result.request_id == "req-123"
    assert result.provider_name == "fal"


def test_submit_uses_configured_endpoint():
    client = FakeSyncClient()
    provider = FalTryOnProvider(
        ProviderConfig(api_key="k", endpoint="fashn/tryon/v1.6"), client=client,
    )
    provider.submit(_request())
    assert client.calls[0]["application"] == "fashn/tryon/v1.6"


def test_submit_reports_queue_updates():
    client = FakeSyncClient(updates=[
        fal_client.Queued(position=3),
        fal_client.InProgress(logs=[{"message": "Loading model"}, {"message": "Sampling"}]),
        fal_client.InProgress(logs=[]),
    ])
    seen = []
    _provider(client).submit(_request(), on_progress=seen.append)
    assert seen == ["Queued (position 3)...", "Loading model\nSampling"]


def test_format_queue_update_ignores_empty_logs():
    assert format_queue_update(fal_client.InProgress(logs=None)) is None
    assert format_queue_update(object()) is None


def test_submit_empty_images_raises():
    client = FakeSyncClient(response={"images": []})
    with pytest.raises(ProviderAPIError, match="returned no images"):
        _provider(client).submit(_request())


@pytest.mark.parametrize("error,expected_type,status", [
    (_HTTPError("Too Many Requests", 429), ProviderRateLimitError, 429),
    (_HTTPError("Unauthorized", 401), ProviderAPIError, 401),
    (_HTTPError("Image dimension too small", 422), ProviderAPIError, 422),
    (RuntimeError("boom"), ProviderAPIError, None),
])
def test_submit_wraps_errors(error, expected_type, status):
    client = FakeSyncClient(subscribe_error=error)
    with pytest.raises(expected_type) as info:
        _provider(client).submit(_request())
    assert getattr(info.value, "status_code", None) == status


def test_submit_keeps_error_message_for_mapping():
    client = FakeSyncClient(subscribe_error=_HTTPError("Image dimension too small", 422))
    with pytest.raises(ProviderAPIError, match="dimension"):
        _provider(client).submit(_request())


def test_submit_timeout():
    client = FakeSyncClient(subscribe_error=TimeoutError("read timed out"))
    with pytest.raises(ProviderTimeoutError):
        _provider(client).submit(_request())
