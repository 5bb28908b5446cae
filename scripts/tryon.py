#!/usr/bin/env python3
"""
Run a virtual try-on from the command line.

Usage:
    python scripts/tryon.py --model person.jpg --garment shirt.png
    python scripts/tryon.py --model person.jpg --garment dress.png \\
        --category one-pieces --num-samples 2 --randomize-seed

The API key is read from FAL_KEY (or FAL_API_KEY), or passed via --api-key.
Result images are downloaded to --output unless --no-download is given.
"""
import sys
import argparse
import logging
from pathlib import Path

import requests

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from error_messages import friendly_error_message
from fal_provider import FalTryOnProvider, resolve_api_key
from image_io import ImageValidationError, download_results, inspect_image
from tryon_provider import (
    CATEGORIES, GARMENT_PHOTO_TYPES, ProviderConfig, ProviderError, TryOnOptions,
)

logger = logging.getLogger("tryon")


def build_parser():
    defaults = TryOnOptions()
    parser = argparse.ArgumentParser(
        description="Dress a model photo in a garment photo via a hosted try-on model"
    )
    parser.add_argument("--model", type=str, required=True, help="Path to model photo")
    parser.add_argument("--garment", type=str, required=True, help="Path to garment photo")
    parser.add_argument(
        "--category", type=str, default="tops", choices=list(CATEGORIES),
        help="Garment category (default: tops)",
    )

    # Generation options
    parser.add_argument(
        "--garment-photo-type", type=str, default=defaults.garment_photo_type,
        choices=list(GARMENT_PHOTO_TYPES),
        help="How the garment is photographed (default: auto)",
    )
    parser.add_argument(
        "--no-nsfw-filter", dest="nsfw_filter", action="store_false",
        help="Disable the content filter",
    )
    parser.add_argument("--cover-feet", action="store_true", help="Cover the model's feet")
    parser.add_argument("--adjust-hands", action="store_true", help="Adjust hand placement")
    parser.add_argument(
        "--restore-background", action="store_true", help="Restore the original background",
    )
    parser.add_argument(
        "--restore-clothes", action="store_true", help="Keep other clothes unchanged",
    )
    parser.add_argument("--long-top", action="store_true", help="Treat the garment as a long top")
    parser.add_argument(
        "--guidance-scale", type=float, default=defaults.guidance_scale,
        help="Guidance scale 1-5 (default: 2.0)",
    )
    parser.add_argument(
        "--timesteps", type=int, default=defaults.timesteps,
        help="Processing steps 10-100 (default: 50)",
    )
    parser.add_argument("--seed", type=int, default=defaults.seed, help="Seed (default: 42)")
    parser.add_argument(
        "--randomize-seed", action="store_true", help="Pick a random seed (overrides --seed)",
    )
    parser.add_argument(
        "--num-samples", type=int, default=defaults.num_samples, choices=[1, 2, 3, 4],
        help="Number of result variants (default: 1)",
    )

    # Provider options
    parser.add_argument("--api-key", type=str, default=None, help="API key override")
    parser.add_argument(
        "--endpoint", type=str, default=ProviderConfig.endpoint,
        help="Hosted model endpoint (default: fashn/tryon)",
    )

    # Output options
    parser.add_argument("--output", type=str, default="output", help="Download directory")
    parser.add_argument(
        "--no-download", action="store_true", help="Only print result URLs",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def options_from_args(args) -> TryOnOptions:
    options = TryOnOptions(
        garment_photo_type=args.garment_photo_type,
        nsfw_filter=args.nsfw_filter,
        cover_feet=args.cover_feet,
        adjust_hands=args.adjust_hands,
        restore_background=args.restore_background,
        restore_clothes=args.restore_clothes,
        long_top=args.long_top,
        guidance_scale=args.guidance_scale,
        timesteps=args.timesteps,
        seed=args.seed,
        num_samples=args.num_samples,
    )
    if args.randomize_seed:
        options.randomize_seed()
    return options


def main(argv=None, provider=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        for path in (args.model, args.garment):
            inspect_image(path)
    except ImageValidationError as e:
        print(f"Error: {e}")
        return 1

    if provider is None:
        api_key = resolve_api_key(args.api_key)
        if not api_key:
            print("Error: Set FAL_KEY environment variable or pass --api-key")
            return 1
        provider = FalTryOnProvider(ProviderConfig(api_key=api_key, endpoint=args.endpoint))

    options = options_from_args(args)
    try:
        result = provider.try_on(
            args.model,
            args.garment,
            category=args.category,
            options=options,
            on_progress=lambda text: print(text),
        )
    except (ProviderError, ValueError) as e:
        logger.debug("Try-on failed", exc_info=True)
        print(f"Error: {friendly_error_message(e)}")
        return 1

    print(f"\nSeed: {options.seed}")
    print(f"Results: {len(result.image_urls)}")
    for index, url in enumerate(result.image_urls, start=1):
        print(f"  [{index}] {url}")

    if not args.no_download:
        try:
            paths = download_results(result.image_urls, args.output)
        except requests.RequestException as e:
            logger.debug("Download failed", exc_info=True)
            print(f"Error: {friendly_error_message(e)}")
            return 1
        for path in paths:
            print(f"Saved: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
