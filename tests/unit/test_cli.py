# tests/unit/test_cli.py
"""
CLI unit tests.

Tests each command via typer's CliRunner. Config loading and the Gemini
client are patched so no user config or network is touched.
"""

import json
import zipfile
from unittest.mock import patch

import pytest
from PIL import Image
from typer.testing import CliRunner

from sticker_studio.cli import _fmt_duration, _read_plan_file, app
from sticker_studio.compositor.image_ops import encode_png
from sticker_studio.config.schema import StickerStudioConfig
from sticker_studio.generation.errors import InvalidCredential, SafetyBlocked
from sticker_studio.planning.schemas import CaptionPair

runner = CliRunner()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class FakeGeminiClient:
    def __init__(self, blocked_caption=None):
        self.blocked_caption = blocked_caption

    async def generate_plan(self, count, context_text=""):
        return [CaptionPair(caption_local=f"L{i}", caption_alt=f"A{i}") for i in range(count)]

    async def generate_grid(self, captions, style_prompt, reference_image=None, token=None):
        if self.blocked_caption in captions:
            raise SafetyBlocked("SAFETY")
        return encode_png(Image.new("RGB", (128, 128), (30, 90, 200)))

    async def generate_single(self, caption, style_prompt, reference_image=None, token=None):
        return encode_png(Image.new("RGB", (64, 64), (200, 30, 30)))

    async def generate_preview(self, style_prompt, reference_image=None):
        return encode_png(Image.new("RGB", (64, 64), (20, 160, 20)))


def _config() -> StickerStudioConfig:
    return StickerStudioConfig(scheduler={"grid": {"batch_delay": 0, "quota_pause": 0}})


@pytest.fixture
def cli_env():
    client = FakeGeminiClient()
    with patch("sticker_studio.cli._load", return_value=_config()), patch(
        "sticker_studio.generation.factory.create_generation_client", return_value=client
    ):
        yield client


def _write_plan(path, captions):
    payload = {
        "caption_mode": "local",
        "items": [{"id": i, "caption": c} for i, c in enumerate(captions)],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_fmt_duration():
    assert _fmt_duration(42) == "42s"
    assert _fmt_duration(317) == "5m17s"


def test_read_plan_file_renumbers(tmp_path):
    path = tmp_path / "plan.json"
    path.write_text(json.dumps([{"id": 7, "caption": "Hi"}, {"id": 9, "caption": "Bye"}]))

    items = _read_plan_file(path)

    assert [i.id for i in items] == [0, 1]
    assert items[1].caption == "Bye"


# ---------------------------------------------------------------------------
# styles / config-path
# ---------------------------------------------------------------------------


def test_styles_lists_catalog(cli_env):
    result = runner.invoke(app, ["styles"])
    assert result.exit_code == 0
    assert "shojo_manga" in result.output
    assert "crayon" in result.output


def test_config_path(tmp_path):
    with patch(
        "sticker_studio.config.loader.get_config_path", return_value=tmp_path / "config.yaml"
    ):
        result = runner.invoke(app, ["config-path"])
    assert result.exit_code == 0
    assert "config.yaml" in result.output


# ---------------------------------------------------------------------------
# plan
# ---------------------------------------------------------------------------


def test_plan_prints_and_saves(cli_env, tmp_path):
    save = tmp_path / "plan.json"
    result = runner.invoke(app, ["plan", "--count", "8", "--mode", "alt", "--save", str(save)])

    assert result.exit_code == 0
    data = json.loads(save.read_text(encoding="utf-8"))
    assert data["caption_mode"] == "alt"
    assert len(data["items"]) == 8
    assert data["items"][0]["caption"] == "A0"
    assert data["items"][0]["caption_local"] == "L0"


def test_plan_rejects_count(cli_env):
    result = runner.invoke(app, ["plan", "--count", "5"])
    assert result.exit_code == 1
    assert "Invalid sticker count" in result.output


def test_plan_missing_key():
    error = InvalidCredential("missing", user_message="API key not configured.")
    with patch("sticker_studio.cli._load", return_value=_config()), patch(
        "sticker_studio.generation.factory.create_generation_client", side_effect=error
    ):
        result = runner.invoke(app, ["plan"])
    assert result.exit_code == 1
    assert "API key not configured" in result.output


# ---------------------------------------------------------------------------
# preview
# ---------------------------------------------------------------------------


def test_preview_writes_png(cli_env, tmp_path):
    output = tmp_path / "preview.png"
    result = runner.invoke(app, ["preview", "--style", "crayon", "--output", str(output)])

    assert result.exit_code == 0
    with Image.open(output) as image:
        assert image.mode == "RGBA"


def test_preview_unknown_style(cli_env, tmp_path):
    result = runner.invoke(app, ["preview", "--style", "nope", "--output", str(tmp_path / "p.png")])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


def test_generate_from_plan_file(cli_env, tmp_path):
    plan_file = _write_plan(tmp_path / "plan.json", [f"Caption {i}" for i in range(8)])
    out = tmp_path / "out"

    result = runner.invoke(
        app, ["generate", "--plan", str(plan_file), "--strategy", "grid", "--output", str(out)]
    )

    assert result.exit_code == 0, result.output
    assert "success: 8" in result.output
    assert (out / "sticker_1.png").exists()
    assert (out / "sticker_8.png").exists()
    with zipfile.ZipFile(out / "line_stickers_pack.zip") as archive:
        assert "line_stickers/main.png" in archive.namelist()


def test_generate_with_failures_exits_nonzero(tmp_path):
    client = FakeGeminiClient(blocked_caption="Caption 5")
    plan_file = _write_plan(tmp_path / "plan.json", [f"Caption {i}" for i in range(8)])
    out = tmp_path / "out"

    with patch("sticker_studio.cli._load", return_value=_config()), patch(
        "sticker_studio.generation.factory.create_generation_client", return_value=client
    ):
        result = runner.invoke(app, ["generate", "--plan", str(plan_file), "--output", str(out)])

    assert result.exit_code == 1
    assert "success: 4" in result.output
    assert "error: 4" in result.output
    assert (out / "sticker_4.png").exists()
    assert not (out / "sticker_5.png").exists()
    assert (out / "line_stickers_pack.zip").exists()


def test_generate_unknown_strategy(cli_env, tmp_path):
    plan_file = _write_plan(tmp_path / "plan.json", ["A", "B"])
    result = runner.invoke(app, ["generate", "--plan", str(plan_file), "--strategy", "turbo"])
    assert result.exit_code == 1
    assert "Unknown strategy" in result.output


def test_generate_missing_key(tmp_path):
    plan_file = _write_plan(tmp_path / "plan.json", ["A", "B"])
    error = InvalidCredential("missing", user_message="API key not configured.")
    with patch("sticker_studio.cli._load", return_value=_config()), patch(
        "sticker_studio.generation.factory.create_generation_client", side_effect=error
    ):
        result = runner.invoke(app, ["generate", "--plan", str(plan_file)])
    assert result.exit_code == 1
    assert "API key not configured" in result.output
