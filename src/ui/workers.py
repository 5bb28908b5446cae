"""
Background task wrapper for try-on runs.

Uses NiceGUI's run.io_bound to keep the UI responsive while the uploads
and the queued try-on job run in a worker thread. Progress is exchanged
through a JSONL file that the page polls.
"""

import os
import dataclasses
import json as _json
import logging
import tempfile
import threading
import time
import traceback
from typing import Callable, Optional

from nicegui import run

from error_messages import friendly_error_message
from ui.state import AppState

logger = logging.getLogger(__name__)

STATUS_STEP = "status"
ERROR_STEP = "error"


# ---------------------------------------------------------------------------
# Progress file helpers (used by worker threads)
# ---------------------------------------------------------------------------

def _write_progress(progress_file: str, step: str, detail: str = "",
                    level: str = "info") -> None:
    """Append a progress line to the shared progress file.

    Each line is a JSON object with timestamp, step name, detail, and level.
    """
    entry = {
        "t": time.time(),
        "step": step,
        "detail": detail,
        "level": level,
    }
    with open(progress_file, "a") as f:
        f.write(_json.dumps(entry) + "\n")
        f.flush()


class _ProgressLogHandler(logging.Handler):
    """Logging handler that writes to a progress file.

    Attaches to provider loggers so their logger.info/warning/error calls
    show up in the UI progress log. Provider loggers are shared by every
    session, so only records from the run's own worker thread are kept.
    """

    def __init__(self, progress_file: str, thread_id: Optional[int] = None):
        super().__init__()
        self.progress_file = progress_file
        self.thread_id = thread_id

    def emit(self, record):
        if self.thread_id is not None and record.thread != self.thread_id:
            return
        try:
            _write_progress(
                self.progress_file,
                step=record.name,
                detail=record.getMessage(),
                level=record.levelname.lower(),
            )
        except Exception:
            self.handleError(record)


_PROVIDER_LOGGER_NAMES = ["tryon_provider", "fal_provider"]


def _attach_progress_logging(progress_file: str,
                             thread_id: Optional[int] = None) -> _ProgressLogHandler:
    """Attach progress handler to all provider loggers."""
    handler = _ProgressLogHandler(progress_file, thread_id)
    handler.setLevel(logging.INFO)
    for name in _PROVIDER_LOGGER_NAMES:
        lgr = logging.getLogger(name)
        lgr.addHandler(handler)
        if lgr.level == logging.NOTSET or lgr.level > logging.INFO:
            lgr.setLevel(logging.INFO)
    return handler


def _detach_progress_logging(handler: _ProgressLogHandler) -> None:
    """Remove the progress handler from all loggers."""
    for name in _PROVIDER_LOGGER_NAMES:
        logging.getLogger(name).removeHandler(handler)


def create_progress_file() -> str:
    """Create a temporary progress file. Returns the path."""
    fd, path = tempfile.mkstemp(prefix="vto_progress_", suffix=".jsonl")
    os.close(fd)
    return path


def replace_progress_file(previous: Optional[str] = None) -> str:
    """Remove the previous run's progress file and create a fresh one."""
    if previous and os.path.isfile(previous):
        try:
            os.remove(previous)
        except OSError as exc:
            logger.warning("Could not remove progress file %s: %s", previous, exc)
    return create_progress_file()


def read_progress(progress_file: str) -> list[dict]:
    """Read all progress entries from a progress file."""
    entries = []
    if not progress_file or not os.path.isfile(progress_file):
        return entries
    try:
        with open(progress_file) as f:
            for line in f:
                line = line.strip()
                if line:
                    entries.append(_json.loads(line))
    except (OSError, _json.JSONDecodeError):
        logger.debug("Progress file %s not readable yet", progress_file)
    return entries


def latest_status(entries: list[dict]) -> Optional[str]:
    """Headline text: the newest status or error entry of this run."""
    for entry in reversed(entries):
        if entry.get("step") in (STATUS_STEP, ERROR_STEP):
            return entry.get("detail") or None
    return None


# ---------------------------------------------------------------------------
# Try-on (IO-bound, runs in thread via run.io_bound)
# ---------------------------------------------------------------------------

def _make_provider(api_key: str, endpoint: str = ""):
    from fal_provider import FalTryOnProvider
    from tryon_provider import ProviderConfig

    config = ProviderConfig(api_key=api_key)
    if endpoint:
        config.endpoint = endpoint
    return FalTryOnProvider(config)


def _do_tryon(
    api_key: str,
    model_image_path: str,
    garment_image_path: str,
    category: str,
    options,
    progress_file: str = "",
    endpoint: str = "",
    provider=None,
) -> list[str]:
    """Top-level function for run.io_bound: runs one try-on via the hosted API.

    Returns the list of result image URLs.
    """
    def _status(text: str) -> None:
        if progress_file:
            _write_progress(progress_file, STATUS_STEP, text)

    handler = None
    if progress_file:
        handler = _attach_progress_logging(progress_file, threading.get_ident())
    try:
        provider = provider or _make_provider(api_key, endpoint)
        result = provider.try_on(
            model_image_path,
            garment_image_path,
            category=category,
            options=options,
            on_progress=_status,
        )
        return result.image_urls
    except Exception as exc:
        if progress_file:
            _write_progress(progress_file, ERROR_STEP,
                            friendly_error_message(exc), level="error")
            _write_progress(progress_file, "traceback",
                            traceback.format_exc(), level="debug")
        raise
    finally:
        if handler is not None:
            _detach_progress_logging(handler)


async def run_tryon(
    state: AppState,
    api_key: str,
    notify: Callable,
    progress_file: str = "",
    endpoint: str = "",
) -> None:
    """Run a try-on for the current state, update state when done."""
    try:
        urls = await run.io_bound(
            _do_tryon,
            api_key,
            state.model_image.path,
            state.garment_image.path,
            state.category,
            dataclasses.replace(state.options),
            progress_file,
            endpoint,
        )
        state.finish_run(urls)
    except Exception as exc:
        logger.exception("Try-on failed")
        state.fail_run(friendly_error_message(exc))
    finally:
        notify()
