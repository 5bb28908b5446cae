"""
Main NiceGUI application: the virtual clothes try-on page.

Layout:
- Two intake columns: model photo and garment photo, each with preview
- Settings card: category, number of results, advanced options
- Generate button, error/progress panels, result gallery
- Settings drawer: fal.ai API key + endpoint (right side, toggled from header)

Run with:
    python scripts/run_ui.py
"""

import json
import logging
from pathlib import Path

from nicegui import app, ui

from fal_provider import resolve_api_key
from image_io import ImageValidationError, save_upload
from tryon_provider import ProviderConfig
from ui.state import AppState, ImageSlot
from ui.components import (
    build_image_intake,
    build_settings_panel,
    build_status_messages,
    build_result_gallery,
    build_progress_log,
)
from ui.workers import run_tryon, replace_progress_file, read_progress, latest_status

logger = logging.getLogger(__name__)

# Directories
BASE_DIR = Path(__file__).resolve().parent.parent.parent
UPLOAD_DIR = BASE_DIR / "uploads"
SETTINGS_PATH = BASE_DIR / ".ui_settings.json"

MODEL_HINT = "Clear full-body photo, plain background recommended (JPEG/PNG)"
GARMENT_HINT = "Front-facing garment photo, plain background recommended (JPEG/PNG)"


# ═══════════════════════════════════════════════════════════════════════════
# Settings persistence
# ═══════════════════════════════════════════════════════════════════════════

def _default_settings() -> dict:
    return {"fal_api_key": "", "endpoint": ProviderConfig.endpoint}


def _load_settings(path: Path = SETTINGS_PATH) -> dict:
    defaults = _default_settings()
    if path.is_file():
        try:
            with open(path) as f:
                saved = json.load(f)
            if isinstance(saved, dict):
                defaults.update(saved)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
    return defaults


def _save_settings(settings: dict, path: Path = SETTINGS_PATH) -> None:
    with open(path, "w") as f:
        json.dump(settings, f, indent=2)


# ═══════════════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════════════

def main() -> None:
    UPLOAD_DIR.mkdir(exist_ok=True)

    app.add_static_files("/uploads", str(UPLOAD_DIR))

    @ui.page("/")
    def index():
        _build_page()

    ui.run(title="Virtual Clothes Try-On", port=8080, reload=False)


# ═══════════════════════════════════════════════════════════════════════════
# Page builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_page() -> None:
    state = AppState()
    settings = _load_settings()
    containers = {}

    def refresh(*names):
        for name in names or containers.keys():
            container = containers[name]
            try:
                container.clear()
                with container:
                    _BUILDERS[name](state, settings, containers, refresh)
            except Exception:
                logger.debug("Refresh of %s skipped (client gone?)", name, exc_info=True)

    # ── Thin header bar ─────────────────────────────────────────────────
    with ui.header().classes(
        "bg-blue-800 text-white items-center h-12 px-4"
    ).style("min-height:48px"):
        ui.label("Virtual Clothes Try-On").classes("text-lg font-bold")
        ui.space()
        ui.button(
            icon="settings", on_click=lambda: settings_drawer.toggle()
        ).props("flat round text-color=white size=sm")

    # ── Settings drawer ─────────────────────────────────────────────────
    with ui.right_drawer(value=False).classes(
        "bg-gray-50 p-4"
    ).style("z-index:200") as settings_drawer:
        ui.label("Settings").classes("text-xl font-bold mb-4")
        ui.separator()

        ui.label("API Key").classes("text-sm font-medium mt-2")
        ui.input(
            label="fal.ai API Key",
            password=True,
            password_toggle_button=True,
            value=settings.get("fal_api_key", ""),
            on_change=lambda e: settings.update(fal_api_key=e.value),
        ).classes("w-full")
        ui.label(
            "Falls back to the FAL_KEY environment variable when empty."
        ).classes("text-xs text-gray-400 mt-1")

        ui.separator().classes("my-3")
        ui.input(
            label="Model Endpoint",
            value=settings.get("endpoint", ""),
            on_change=lambda e: settings.update(endpoint=e.value),
        ).classes("w-full")

        ui.label(
            "Saved to .ui_settings.json (gitignored)."
        ).classes("text-xs text-gray-400 mt-1")

        ui.button(
            "Save Settings",
            on_click=lambda: _handle_save_settings(settings),
            icon="save",
        ).classes("w-full mt-4").props("color=primary")

    # ── Main column ─────────────────────────────────────────────────────
    with ui.column().classes("w-full max-w-6xl mx-auto py-8 px-4 gap-6"):
        ui.label("Virtual Clothes Try-On").classes(
            "text-3xl font-bold self-center text-gray-900"
        )

        with ui.grid(columns=2).classes("w-full gap-8"):
            containers["model"] = ui.element("div").classes("w-full")
            containers["garment"] = ui.element("div").classes("w-full")

        with ui.card().classes("w-full p-6"):
            containers["settings"] = ui.element("div").classes("w-full")

        containers["action"] = ui.row().classes("w-full justify-center")
        containers["status"] = ui.element("div").classes("w-full")
        containers["log"] = ui.element("div").classes("w-full")
        containers["results"] = ui.element("div").classes("w-full mb-12")

    refresh("model", "garment", "settings", "action", "status", "results")


# ═══════════════════════════════════════════════════════════════════════════
# Sub-builders
# ═══════════════════════════════════════════════════════════════════════════

def _build_model_intake(state, settings, containers, refresh) -> None:
    build_image_intake(
        state.model_image, "Upload Model Photo", MODEL_HINT,
        on_upload=lambda e: _handle_upload(e, state.model_image, refresh),
    )


def _build_garment_intake(state, settings, containers, refresh) -> None:
    build_image_intake(
        state.garment_image, "Upload Garment", GARMENT_HINT,
        on_upload=lambda e: _handle_upload(e, state.garment_image, refresh),
    )


def _build_settings(state, settings, containers, refresh) -> None:
    build_settings_panel(state, on_change=lambda: refresh("settings"))


def _build_action(state, settings, containers, refresh) -> None:
    if state.is_loading:
        with ui.button().props("disable size=lg color=primary").classes("px-8"):
            ui.spinner(size="sm", color="white").classes("mr-2")
            ui.label("Processing...")
        return

    button = ui.button(
        "Generate Try-On",
        on_click=lambda: _handle_tryon(state, settings, containers, refresh),
    ).props("size=lg color=primary no-caps").classes("px-8")
    if not state.can_submit:
        button.disable()


def _build_status(state, settings, containers, refresh) -> None:
    build_status_messages(state)


def _build_log(state, settings, containers, refresh) -> None:
    build_progress_log(state.progress_file, lambda: state.is_loading)


def _build_results(state, settings, containers, refresh) -> None:
    build_result_gallery(state)


_BUILDERS = {
    "model": _build_model_intake,
    "garment": _build_garment_intake,
    "settings": _build_settings,
    "action": _build_action,
    "status": _build_status,
    "log": _build_log,
    "results": _build_results,
}


# ═══════════════════════════════════════════════════════════════════════════
# Handlers
# ═══════════════════════════════════════════════════════════════════════════

def _handle_save_settings(settings: dict) -> None:
    _save_settings(settings)
    ui.notify("Settings saved.", type="positive")


async def _handle_upload(event, slot: ImageSlot, refresh) -> None:
    try:
        info = save_upload(event.name, event.content.read(), str(UPLOAD_DIR))
    except ImageValidationError as exc:
        ui.notify(str(exc), type="negative")
        return

    slot.set_image(info, f"/uploads/{info.filename}")
    refresh(slot.role, "action")
    ui.notify(f"Uploaded {event.name}", type="positive")


async def _handle_tryon(state: AppState, settings: dict, containers, refresh) -> None:
    if state.is_loading:
        ui.notify("Already running.", type="info")
        return

    missing = state.missing_images_error()
    if missing:
        state.error = missing
        refresh("status")
        return

    api_key = resolve_api_key(settings.get("fal_api_key"))
    if not api_key:
        ui.notify("API key required. Open Settings.", type="warning")
        return

    state.begin_run()
    state.progress_file = replace_progress_file(state.progress_file)
    refresh("action", "status", "log", "results")

    def _poll_status():
        text = latest_status(read_progress(state.progress_file))
        if text and text != state.progress and state.is_loading:
            state.progress = text
            refresh("status")

    status_timer = ui.timer(0.5, _poll_status)

    def after_tryon():
        status_timer.deactivate()
        refresh("action", "status", "results")

    await run_tryon(
        state,
        api_key,
        after_tryon,
        state.progress_file,
        settings.get("endpoint", ""),
    )
