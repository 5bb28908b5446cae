"""
Shared test fixtures for the try-on client tests.
"""
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tryon_provider import (
    TryOnProvider, ProviderConfig, TryOnResult, extract_image_urls,
)


@pytest.fixture
def png_file(tmp_path):
    """A small 64x96 RGB PNG."""
    path = tmp_path / "model.png"
    Image.new("RGB", (64, 96), (200, 180, 160)).save(path, format="PNG")
    return str(path)


@pytest.fixture
def jpeg_file(tmp_path):
    """A small 80x80 RGB JPEG."""
    path = tmp_path / "garment.jpg"
    Image.new("RGB", (80, 80), (20, 40, 160)).save(path, format="JPEG")
    return str(path)


@pytest.fixture
def png_bytes(png_file):
    return Path(png_file).read_bytes()


class FakeProvider(TryOnProvider):
    """In-memory provider: records calls, returns canned responses."""

    def __init__(self, response=None, upload_error=None, submit_error=None,
                 queue_messages=()):
        super().__init__(ProviderConfig(api_key="test-key"))
        self.response = response if response is not None else {
            "images": [{"url": "https://cdn.example/result-1.png"}],
        }
        self.upload_error = upload_error
        self.submit_error = submit_error
        self.queue_messages = list(queue_messages)
        self.uploaded = []
        self.requests = []

    @property
    def name(self):
        return "fake"

    def upload_image(self, image_path):
        if self.upload_error is not None:
            raise self.upload_error
        self.uploaded.append(image_path)
        return f"https://storage.example/{len(self.uploaded)}.png"

    def submit(self, request, on_progress=None):
        self.requests.append(request)
        for message in self.queue_messages:
            if on_progress:
                on_progress(message)
        if self.submit_error is not None:
            raise self.submit_error
        return TryOnResult(
            image_urls=extract_image_urls(self.response),
            provider_name=self.name,
        )


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_fake_provider():
    return FakeProvider
