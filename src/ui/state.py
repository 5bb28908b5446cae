"""
Per-session state management for the web UI.

Two dataclasses:
- ImageSlot: one per intake column (model photo, garment photo)
- AppState: session root (both slots, try-on settings, run status, results)
"""

from dataclasses import dataclass, field
from typing import Optional, List

from image_io import ImageInfo
from tryon_provider import (
    TryOnOptions, DEFAULT_CATEGORY, STATUS_STARTING, STATUS_COMPLETED,
)

MISSING_IMAGES_ERROR = "Please upload both a model image and a garment image"


@dataclass
class ImageSlot:
    """State for one uploaded photo."""

    role: str
    path: Optional[str] = None
    filename: Optional[str] = None
    preview_url: Optional[str] = None
    width: int = 0
    height: int = 0

    @property
    def is_set(self) -> bool:
        return self.path is not None

    def set_image(self, info: ImageInfo, preview_url: str) -> None:
        self.path = info.path
        self.filename = info.filename
        self.preview_url = preview_url
        self.width = info.width
        self.height = info.height

    def clear(self) -> None:
        self.path = None
        self.filename = None
        self.preview_url = None
        self.width = 0
        self.height = 0


@dataclass
class AppState:
    """Root session state."""

    model_image: ImageSlot = field(default_factory=lambda: ImageSlot("model"))
    garment_image: ImageSlot = field(default_factory=lambda: ImageSlot("garment"))
    category: str = DEFAULT_CATEGORY
    options: TryOnOptions = field(default_factory=TryOnOptions)
    show_advanced: bool = False
    result_urls: List[str] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
    progress: Optional[str] = None
    progress_file: Optional[str] = None  # temp file for worker progress updates

    @property
    def can_submit(self) -> bool:
        return (
            self.model_image.is_set
            and self.garment_image.is_set
            and not self.is_loading
        )

    def missing_images_error(self) -> Optional[str]:
        if not (self.model_image.is_set and self.garment_image.is_set):
            return MISSING_IMAGES_ERROR
        return None

    def begin_run(self) -> None:
        self.is_loading = True
        self.error = None
        self.result_urls = []
        self.progress = STATUS_STARTING

    def finish_run(self, urls: List[str]) -> None:
        self.result_urls = list(urls)
        self.progress = STATUS_COMPLETED
        self.is_loading = False

    def fail_run(self, message: str) -> None:
        self.error = message
        self.is_loading = False

    def toggle_advanced(self) -> bool:
        self.show_advanced = not self.show_advanced
        return self.show_advanced
