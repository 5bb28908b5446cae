"""
Reusable UI builder functions for the NiceGUI web interface.

Each builder renders into the current container; callers clear and
rebuild the container when state changes.
"""

import time
from typing import Callable, Optional

from nicegui import ui

from tryon_provider import (
    GUIDANCE_SCALE_RANGE, TIMESTEPS_RANGE, NUM_SAMPLES_RANGE, parse_seed,
)
from ui.state import AppState, ImageSlot
from ui.workers import read_progress

PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/500x500?text=Image+failed+to+load"
ACCEPT_PROP = 'accept=".jpeg,.jpg,.png,.JPEG,.JPG,.PNG"'

CATEGORY_LABELS = {
    "tops": "Tops",
    "bottoms": "Bottoms",
    "one-pieces": "One Pieces",
}

GARMENT_PHOTO_TYPE_LABELS = {
    "auto": "Auto Detect",
    "model": "On Model",
    "flat-lay": "Flat Lay",
}

# (option attribute, checkbox label)
_TOGGLES = [
    ("nsfw_filter", "NSFW Filter"),
    ("cover_feet", "Cover Feet"),
    ("adjust_hands", "Adjust Hands"),
    ("restore_background", "Restore Background"),
    ("restore_clothes", "Keep Other Clothes"),
    ("long_top", "Long Top"),
]


def _sample_label(n: int) -> str:
    return f"{n} {'variants' if n > 1 else 'variant'}"


def build_image_intake(
    slot: ImageSlot,
    title: str,
    hint: str,
    on_upload: Callable,
) -> None:
    """Single-file JPEG/PNG intake with a preview of the current image."""
    ui.label(title).classes("text-xl font-semibold mb-1")
    ui.label(hint).classes("text-sm text-gray-500 mb-2")

    with ui.column().classes(
        "w-full items-center border-2 border-dashed border-gray-300 "
        "rounded-lg p-4 gap-1"
    ):
        ui.label(
            f"Drag & drop your {slot.role} image here, or click to select"
        ).classes("text-gray-600 text-center")
        ui.label("Supports: JPEG, JPG, PNG").classes("text-sm text-gray-500")
        ui.upload(
            auto_upload=True,
            max_files=1,
            on_upload=on_upload,
            on_rejected=lambda: ui.notify(
                "Only one JPEG or PNG image is accepted.", type="warning"
            ),
        ).props(f"{ACCEPT_PROP} flat bordered").classes("w-full")

    if slot.preview_url:
        with ui.column().classes("mt-4 gap-1"):
            ui.label("Preview:").classes("text-sm font-medium text-gray-700")
            ui.image(slot.preview_url).props("fit=contain").classes(
                "max-h-40 w-64 rounded-md border border-gray-200"
            )
            ui.label(
                f"{slot.filename} · {slot.width}×{slot.height}"
            ).classes("text-[10px] text-gray-400")


def build_settings_panel(state: AppState, on_change: Callable) -> None:
    """Category, sample count and (optionally) the advanced option controls."""
    opts = state.options

    with ui.row().classes("w-full justify-between items-center mb-2"):
        ui.label("Try-On Settings").classes("text-xl font-semibold")
        ui.button(
            "Hide Advanced Options" if state.show_advanced else "Show Advanced Options",
            on_click=lambda: (state.toggle_advanced(), on_change()),
        ).props("flat dense no-caps color=primary")

    with ui.grid(columns=2).classes("w-full gap-4"):
        ui.select(
            CATEGORY_LABELS,
            value=state.category,
            label="Garment Category",
            on_change=lambda e: setattr(state, "category", e.value),
        ).classes("w-full")

        lo, hi = NUM_SAMPLES_RANGE
        ui.select(
            {n: _sample_label(n) for n in range(lo, hi + 1)},
            value=opts.num_samples,
            label="Number of Results",
            on_change=lambda e: setattr(opts, "num_samples", int(e.value)),
        ).classes("w-full")

    if not state.show_advanced:
        return

    with ui.grid(columns=3).classes("w-full gap-4 mt-4"):
        ui.select(
            GARMENT_PHOTO_TYPE_LABELS,
            value=opts.garment_photo_type,
            label="Garment Photo Type",
            on_change=lambda e: setattr(opts, "garment_photo_type", e.value),
        ).classes("w-full")

        with ui.column().classes("gap-0"):
            _slider(
                "Guidance Scale", opts.guidance_scale,
                GUIDANCE_SCALE_RANGE[0], GUIDANCE_SCALE_RANGE[1], 0.1,
                lambda v: setattr(opts, "guidance_scale", float(v)),
            )
            ui.label(
                "Higher values preserve more detail but may oversaturate"
            ).classes("text-xs text-gray-500")

        with ui.column().classes("gap-0"):
            _slider(
                "Processing Steps", opts.timesteps,
                TIMESTEPS_RANGE[0], TIMESTEPS_RANGE[1], 5,
                lambda v: setattr(opts, "timesteps", int(v)),
            )
            ui.label("More steps = better quality but slower").classes(
                "text-xs text-gray-500"
            )

    with ui.row().classes("w-full gap-4 pt-2"):
        for attr, label in _TOGGLES:
            ui.checkbox(
                label,
                value=getattr(opts, attr),
                on_change=lambda e, a=attr: setattr(opts, a, bool(e.value)),
            ).classes("text-sm")

    with ui.column().classes("pt-2 gap-1"):
        with ui.row().classes("items-end gap-2"):
            seed_input = ui.input(
                label="Seed Value",
                value=str(opts.seed),
                on_change=lambda e: setattr(opts, "seed", parse_seed(e.value)),
            ).props("dense outlined").classes("w-24")

            def _randomize():
                seed_input.value = str(opts.randomize_seed())

            ui.button("Randomize", on_click=_randomize).props(
                "flat dense no-caps"
            ).classes("bg-gray-100 text-gray-700")
        ui.label("Same seed + same inputs = same result").classes(
            "text-xs text-gray-500"
        )


def build_status_messages(state: AppState) -> None:
    """Error and progress panels."""
    if state.error:
        with ui.row().classes(
            "w-full bg-red-50 border-l-4 border-red-500 p-4 mb-4 items-start"
        ):
            ui.icon("error", size="sm").classes("text-red-500")
            with ui.column().classes("gap-1"):
                ui.label("Error").classes("text-sm font-medium text-red-800")
                ui.label(state.error).classes("text-sm text-red-700")

    if state.progress:
        with ui.row().classes(
            "w-full bg-blue-50 border-l-4 border-blue-500 p-4 mb-4 items-start"
        ):
            ui.icon("info", size="sm").classes("text-blue-500")
            with ui.column().classes("gap-1"):
                ui.label("Progress").classes("text-sm font-medium text-blue-800")
                ui.label(state.progress).classes(
                    "text-sm text-blue-700 whitespace-pre-wrap"
                )


def build_result_gallery(state: AppState) -> None:
    """Result cards, or the empty placeholder (with spinner while loading)."""
    ui.label("Results").classes("text-xl font-semibold mb-2")

    if not state.result_urls:
        with ui.element("div").classes("relative w-full"):
            with ui.column().classes(
                "w-full items-center border-2 border-dashed border-gray-300 "
                "rounded-lg p-8"
            ):
                ui.label(
                    "Your virtual try-on result will appear here"
                ).classes("text-gray-600")
            if state.is_loading:
                with ui.row().classes(
                    "absolute inset-0 items-center justify-center "
                    "bg-black/50 rounded-lg"
                ):
                    ui.spinner(size="xl", color="primary")
        return

    with ui.grid(columns=3).classes("w-full gap-6"):
        for index, url in enumerate(state.result_urls, start=1):
            with ui.card().classes("p-0 overflow-hidden"):
                img = ui.image(url).classes("w-full rounded-md")
                img.props(f'alt="Try-on result {index}"')
                img.on("error", lambda _e, i=img: i.set_source(PLACEHOLDER_IMAGE_URL))
                with ui.row().classes("w-full justify-end bg-gray-50 px-4 py-3"):
                    ui.link("View", url, new_tab=True).classes(
                        "px-3 py-2 rounded-md text-white bg-blue-600 "
                        "text-sm no-underline"
                    )


def build_progress_log(progress_file: str, is_running: Callable[[], bool]) -> Optional[ui.timer]:
    """Render a live progress log that polls the run's progress file.

    Returns the timer so the caller can deactivate it when the run completes.
    """
    if not progress_file:
        return None

    start_time = time.time()

    with ui.expansion("Details", icon="list").classes("w-full"):
        elapsed_label = ui.label("").classes("text-xs text-gray-500")
        log_area = ui.element("div").classes(
            "w-full max-h-32 overflow-y-auto bg-gray-50 rounded p-1"
        ).style("font-family: monospace; font-size: 11px;")

    seen_count = {"n": 0}

    def _poll():
        entries = read_progress(progress_file)
        elapsed = time.time() - start_time
        elapsed_label.text = f"Elapsed: {elapsed:.0f}s"

        if len(entries) > seen_count["n"]:
            new_entries = entries[seen_count["n"]:]
            seen_count["n"] = len(entries)
            with log_area:
                for entry in new_entries:
                    lvl = entry.get("level", "info")
                    if lvl == "debug":
                        continue
                    txt = entry.get("detail", entry.get("step", ""))
                    if lvl == "error":
                        color_cls = "text-red-600"
                    elif lvl == "warning":
                        color_cls = "text-amber-600"
                    else:
                        color_cls = "text-gray-700"
                    dt = entry.get("t", time.time()) - start_time
                    ui.label(
                        f"[{dt:5.1f}s] {txt}"
                    ).classes(f"text-[10px] leading-tight whitespace-pre-wrap {color_cls}")

        if not is_running():
            elapsed_label.text = f"Done in {elapsed:.1f}s"
            timer.deactivate()

    timer = ui.timer(0.5, _poll)
    return timer


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _slider(
    label: str,
    value: float,
    min_val: float,
    max_val: float,
    step: float,
    on_change: Callable,
) -> None:
    def _format(v):
        return f"{v:g}"

    with ui.row().classes("w-full items-center gap-1"):
        ui.label(label).classes("text-sm font-medium text-gray-700")
        val_label = ui.label(f"({_format(value)})").classes("text-sm text-gray-700")

    def _on_slide(e, cb=on_change):
        val_label.text = f"({_format(e.value)})"
        cb(e.value)

    ui.slider(
        min=min_val, max=max_val, step=step, value=value,
        on_change=_on_slide,
    ).classes("w-full")
