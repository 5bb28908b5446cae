"""
Abstract try-on provider interface for hosted image-generation APIs.

Providers upload a model photo and a garment photo to the service's
storage, submit a try-on job, and return the URLs of the generated images.
The fal.ai implementation lives in fal_provider.py.
"""
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List, Callable

logger = logging.getLogger(__name__)

CATEGORIES = ("tops", "bottoms", "one-pieces")
GARMENT_PHOTO_TYPES = ("auto", "model", "flat-lay")

DEFAULT_CATEGORY = "tops"
DEFAULT_SEED = 42
SEED_RANGE = 100000

GUIDANCE_SCALE_RANGE = (1.0, 5.0)
TIMESTEPS_RANGE = (10, 100)
NUM_SAMPLES_RANGE = (1, 4)

STATUS_STARTING = "Starting try-on process..."
STATUS_UPLOADING_MODEL = "Uploading model image..."
STATUS_UPLOADING_GARMENT = "Uploading garment image..."
STATUS_SUBMITTING = "Submitting try-on request..."
STATUS_COMPLETED = "Try-on completed successfully!"

ProgressCallback = Callable[[str], None]


class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class ProviderUploadError(ProviderError):
    """Image could not be uploaded to the provider's storage."""
    pass


class ProviderAPIError(ProviderError):
    """API returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderTimeoutError(ProviderError):
    """Job took too long to complete."""
    pass


class ProviderRateLimitError(ProviderError):
    """API rate limit hit."""
    status_code = 429


@dataclass
class TryOnOptions:
    """Named generation options sent with every try-on job."""
    garment_photo_type: str = "auto"
    nsfw_filter: bool = True
    cover_feet: bool = False
    adjust_hands: bool = False
    restore_background: bool = False
    restore_clothes: bool = False      # keep clothes not covered by the garment
    long_top: bool = False
    guidance_scale: float = 2.0
    timesteps: int = 50
    seed: int = DEFAULT_SEED
    num_samples: int = 1

    def validate(self) -> None:
        if self.garment_photo_type not in GARMENT_PHOTO_TYPES:
            raise ValueError(
                f"garment_photo_type must be one of {GARMENT_PHOTO_TYPES}, "
                f"got {self.garment_photo_type!r}"
            )
        lo, hi = GUIDANCE_SCALE_RANGE
        if not lo <= self.guidance_scale <= hi:
            raise ValueError(
                f"guidance_scale must be between {lo} and {hi}, "
                f"got {self.guidance_scale}"
            )
        lo, hi = TIMESTEPS_RANGE
        if not lo <= self.timesteps <= hi:
            raise ValueError(
                f"timesteps must be between {lo} and {hi}, got {self.timesteps}"
            )
        lo, hi = NUM_SAMPLES_RANGE
        if not lo <= self.num_samples <= hi:
            raise ValueError(
                f"num_samples must be between {lo} and {hi}, got {self.num_samples}"
            )
        if self.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.seed}")

    def randomize_seed(self, rng: Optional[random.Random] = None) -> int:
        """Pick a fresh seed in [0, 100000) and return it."""
        self.seed = (rng or random).randrange(SEED_RANGE)
        return self.seed


def parse_seed(value) -> int:
    """Parse seed text; empty, invalid or zero input falls back to 42."""
    try:
        seed = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_SEED
    return seed or DEFAULT_SEED


@dataclass
class TryOnRequest:
    """One try-on job: hosted image references plus generation options."""
    model_image_url: str
    garment_image_url: str
    category: str = DEFAULT_CATEGORY
    options: TryOnOptions = field(default_factory=TryOnOptions)

    def to_arguments(self) -> Dict[str, Any]:
        """JSON request body for the hosted try-on endpoint."""
        arguments = {
            "model_image": self.model_image_url,
            "garment_image": self.garment_image_url,
            "category": self.category,
        }
        arguments.update(asdict(self.options))
        return arguments


@dataclass
class TryOnResult:
    """Result from a try-on job."""
    image_urls: List[str]           # Hosted result images, in service order
    request_id: str = ""            # Provider's request ID, when known
    provider_name: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderConfig:
    """Configuration for a try-on provider."""
    api_key: str
    endpoint: str = "fashn/tryon"
    timeout_seconds: float = 300.0      # 5 minute default


def extract_image_urls(response: Optional[Dict[str, Any]]) -> List[str]:
    """Check a try-on response and pull out the result image URLs.

    Raises:
        ProviderAPIError: If the response is empty, carries an error
            object, or completed without images.
    """
    if not response:
        raise ProviderAPIError("No response received from API")

    error = response.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise ProviderAPIError(message or "API returned an error")

    images = response.get("images") or []
    urls = [img.get("url") for img in images if isinstance(img, dict) and img.get("url")]
    if not urls:
        raise ProviderAPIError("API completed but returned no images")
    return urls


class TryOnProvider(ABC):
    """Abstract base class for hosted virtual try-on providers.

    Implementations must handle:
    - API authentication
    - Uploading local images to the provider's storage
    - Queued job submission with progress callbacks
    - Error handling (timeouts, rate limits, failures)
    """

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier (e.g., 'fal')."""
        ...

    @abstractmethod
    def upload_image(self, image_path: str) -> str:
        """Upload a local image and return its hosted URL.

        Raises:
            ProviderError: If the file does not exist.
            ProviderUploadError: If the storage upload fails.
        """
        ...

    @abstractmethod
    def submit(self, request: TryOnRequest,
               on_progress: Optional[ProgressCallback] = None) -> TryOnResult:
        """Submit a try-on job and wait for it to finish.

        Args:
            request: Hosted image references, category and options.
            on_progress: Called with human-readable status text while the
                job is queued or running.

        Returns:
            TryOnResult with the URLs of the generated images.

        Raises:
            ProviderTimeoutError: If the job exceeds the timeout.
            ProviderAPIError: If the API returns an error.
            ProviderRateLimitError: If rate limited.
        """
        ...

    def try_on(
        self,
        model_image_path: str,
        garment_image_path: str,
        category: str = DEFAULT_CATEGORY,
        options: Optional[TryOnOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> TryOnResult:
        """Upload both photos, submit the job and return the result.

        Category and options are validated before any network call.
        """
        options = options or TryOnOptions()
        if category not in CATEGORIES:
            raise ValueError(f"category must be one of {CATEGORIES}, got {category!r}")
        options.validate()

        report = on_progress or (lambda _msg: None)

        report(STATUS_STARTING)
        report(STATUS_UPLOADING_MODEL)
        model_url = self.upload_image(model_image_path)
        logger.info("Model image uploaded: %s", model_url)

        report(STATUS_UPLOADING_GARMENT)
        garment_url = self.upload_image(garment_image_path)
        logger.info("Garment image uploaded: %s", garment_url)

        report(STATUS_SUBMITTING)
        request = TryOnRequest(
            model_image_url=model_url,
            garment_image_url=garment_url,
            category=category,
            options=options,
        )
        result = self.submit(request, on_progress=on_progress)

        report(STATUS_COMPLETED)
        logger.info("Try-on returned %d image(s)", len(result.image_urls))
        return result
