from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest
import requests

from tryon_provider import ProviderAPIError

REPO_ROOT = Path(__file__).resolve().parent.parent
CLI_PATH = REPO_ROOT / "scripts" / "tryon.py"


def _load_cli():
    spec = importlib.util.spec_from_file_location("tryon_cli", CLI_PATH)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_prints_results(png_file, jpeg_file, make_fake_provider, capsys):
    cli = _load_cli()
    provider = make_fake_provider()
    code = cli.main(
        ["--model", png_file, "--garment", jpeg_file, "--category", "bottoms",
         "--num-samples", "2", "--seed", "7", "--cover-feet", "--no-download"],
        provider=provider,
    )
    out = capsys.readouterr().out
    assert code == 0
    assert "Uploading model image..." in out
    assert "https://cdn.example/result-1.png" in out
    assert "Seed: 7" in out

    req = provider.requests[0]
    assert req.category == "bottoms"
    assert req.options.num_samples == 2
    assert req.options.cover_feet is True
    assert req.options.nsfw_filter is True


def test_cli_randomize_seed(png_file, jpeg_file):
    cli = _load_cli()
    args = cli.build_parser().parse_args(
        ["--model", png_file, "--garment", jpeg_file, "--randomize-seed"]
    )
    options = cli.options_from_args(args)
    assert 0 <= options.seed < 100000


def test_cli_rejects_unsupported_image(tmp_path, jpeg_file, fake_provider, capsys):
    cli = _load_cli()
    bad = tmp_path / "model.bmp"
    bad.write_bytes(b"BM")
    code = cli.main(["--model", str(bad), "--garment", jpeg_file], provider=fake_provider)
    assert code == 1
    assert "Error:" in capsys.readouterr().out
    assert fake_provider.uploaded == []


def test_cli_requires_api_key(png_file, jpeg_file, monkeypatch, capsys):
    monkeypatch.delenv("FAL_KEY", raising=False)
    monkeypatch.delenv("FAL_API_KEY", raising=False)
    cli = _load_cli()
    code = cli.main(["--model", png_file, "--garment", jpeg_file])
    assert code == 1
    assert "FAL_KEY" in capsys.readouterr().out


def test_cli_maps_errors(png_file, jpeg_file, make_fake_provider, capsys):
    cli = _load_cli()
    provider = make_fake_provider(submit_error=ProviderAPIError("NSFW content detected"))
    code = cli.main(
        ["--model", png_file, "--garment", jpeg_file, "--no-download"], provider=provider,
    )
    assert code == 1
    assert "Content flagged as inappropriate" in capsys.readouterr().out


@pytest.mark.parametrize("flag", ["--guidance-scale=9", "--timesteps=3"])
def test_cli_rejects_out_of_range_options(png_file, jpeg_file, fake_provider, capsys, flag):
    cli = _load_cli()
    code = cli.main(
        ["--model", png_file, "--garment", jpeg_file, flag, "--no-download"],
        provider=fake_provider,
    )
    assert code == 1
    assert fake_provider.uploaded == []


def test_cli_download_failure_exits_with_error(png_file, jpeg_file, tmp_path,
                                               make_fake_provider, monkeypatch, capsys):
    import image_io

    def refuse(url, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(image_io.requests, "get", refuse)
    cli = _load_cli()
    code = cli.main(
        ["--model", png_file, "--garment", jpeg_file, "--output", str(tmp_path / "out")],
        provider=make_fake_provider(),
    )
    out = capsys.readouterr().out
    assert code == 1
    assert "Error: connection refused" in out
    assert "Saved:" not in out
