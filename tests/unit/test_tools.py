# tests/unit/test_tools.py
"""
Integration tests for the MCP tool layer.

The Gemini client is replaced with a fake that returns real PNGs, so the
compositor and archive builder run for real.
"""

import asyncio
import zipfile
from unittest.mock import patch

import pytest
from fastmcp.exceptions import ToolError
from PIL import Image

from sticker_studio.background.lifecycle import StudioLifecycle
from sticker_studio.compositor.image_ops import encode_png
from sticker_studio.config.schema import StickerStudioConfig
from sticker_studio.generation.errors import InvalidCredential, PlanParseError
from sticker_studio.planning.schemas import CaptionPair
from sticker_studio.tools.check_status import cancel_generation, check_status
from sticker_studio.tools.create_plan import create_plan
from sticker_studio.tools.export_pack import export_pack
from sticker_studio.tools.list_styles import list_styles
from sticker_studio.tools.regenerate_sticker import regenerate_sticker
from sticker_studio.tools.start_generation import start_generation
from sticker_studio.tools.update_caption import set_caption_mode, update_caption


class FakeGeminiClient:
    def __init__(self, plan_error=None):
        self.plan_error = plan_error
        self.grid_calls: list[list[str]] = []
        self.single_calls: list[str] = []
        self.references = []

    async def generate_plan(self, count, context_text=""):
        if self.plan_error:
            raise self.plan_error
        return [CaptionPair(caption_local=f"L{i}", caption_alt=f"A{i}") for i in range(count)]

    async def generate_grid(self, captions, style_prompt, reference_image=None, token=None):
        self.grid_calls.append(list(captions))
        self.references.append(reference_image)
        return encode_png(Image.new("RGB", (128, 128), (30, 90, 200)))

    async def generate_single(self, caption, style_prompt, reference_image=None, token=None):
        self.single_calls.append(caption)
        return encode_png(Image.new("RGB", (64, 64), (200, 30, 30)))


def _config() -> StickerStudioConfig:
    return StickerStudioConfig(scheduler={"grid": {"batch_delay": 0, "quota_pause": 0}})


@pytest.fixture
def fake_client():
    client = FakeGeminiClient()
    with patch("sticker_studio.background.lifecycle.create_generation_client", return_value=client):
        yield client


@pytest.fixture
def lifecycle(fake_client) -> StudioLifecycle:
    return StudioLifecycle(_config())


# ---------------------------------------------------------------------------
# Styles and plans
# ---------------------------------------------------------------------------


def test_list_styles(lifecycle):
    result = list_styles(lifecycle=lifecycle)
    assert len(result["styles"]) == 8
    assert result["default_style"] == "shojo_manga"
    assert {"id", "name", "prompt_modifier"} <= set(result["styles"][0])


@pytest.mark.asyncio
async def test_create_plan_and_edit(lifecycle):
    result = await create_plan(8, "office", None, lifecycle=lifecycle)

    assert len(result["items"]) == 8
    assert result["items"][0]["caption"] == "L0 (A0)"
    assert result["caption_mode"] == "both"

    result = update_caption(0, "Morning!", lifecycle=lifecycle)
    assert result["items"][0]["caption"] == "Morning!"

    result = update_caption(1, "Morning!", lifecycle=lifecycle)
    assert result["duplicates"] == ["Morning!"]

    result = set_caption_mode("alt", lifecycle=lifecycle)
    assert [i["caption"] for i in result["items"][:2]] == ["A0", "A1"]
    assert result["duplicates"] == []


@pytest.mark.asyncio
async def test_create_plan_rejects_count(lifecycle):
    with pytest.raises(ToolError, match="8, 16, 24"):
        await create_plan(10, None, None, lifecycle=lifecycle)


@pytest.mark.asyncio
async def test_create_plan_rejects_mode(lifecycle):
    with pytest.raises(ToolError, match="caption mode"):
        await create_plan(8, None, "klingon", lifecycle=lifecycle)


@pytest.mark.asyncio
async def test_create_plan_surfaces_parse_error(fake_client, lifecycle):
    fake_client.plan_error = PlanParseError("bad json", user_message="The plan could not be read.")
    with pytest.raises(ToolError, match="could not be read"):
        await create_plan(8, None, None, lifecycle=lifecycle)


@pytest.mark.asyncio
async def test_create_plan_missing_credential():
    error = InvalidCredential("missing", user_message="API key not configured.")
    with patch("sticker_studio.background.lifecycle.create_generation_client", side_effect=error):
        lifecycle = StudioLifecycle(_config())
        with pytest.raises(ToolError, match="API key not configured"):
            await create_plan(8, None, None, lifecycle=lifecycle)
    assert lifecycle.plan == []


def test_update_caption_without_plan(lifecycle):
    with pytest.raises(ToolError, match="create_plan"):
        update_caption(0, "hi", lifecycle=lifecycle)


# ---------------------------------------------------------------------------
# Generation flow
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_full_generation_flow(fake_client, lifecycle, tmp_path):
    await create_plan(8, None, "alt", lifecycle=lifecycle)

    started = await start_generation("crayon", None, None, lifecycle=lifecycle)
    assert started["state"] == "running"
    assert started["strategy"] == "grid"
    assert started["style_id"] == "crayon"
    assert started["total"] == 8

    await lifecycle.scheduler.wait()

    status = await check_status(lifecycle=lifecycle)
    assert status["state"] == "complete"
    assert status["progress"] == 1.0
    assert status["counts"]["success"] == 8
    assert len(status["stickers"]) == 8
    assert all(s["has_image"] for s in status["stickers"])
    assert len(fake_client.grid_calls) == 2

    regenerated = await regenerate_sticker(3, "Thanks!", lifecycle=lifecycle)
    assert regenerated["status"] == "success"
    assert regenerated["caption"] == "Thanks!"
    assert fake_client.single_calls == ["Thanks!"]

    exported = await export_pack(str(tmp_path / "out"), lifecycle=lifecycle)
    assert exported["sticker_count"] == 8
    with zipfile.ZipFile(exported["path"]) as archive:
        names = archive.namelist()
    assert "line_stickers/sticker_8.png" in names
    assert "line_stickers/main.png" in names
    assert "line_stickers/tab.png" in names


@pytest.mark.asyncio
async def test_regenerated_caption_carries_into_next_run(fake_client, lifecycle):
    await create_plan(8, None, "alt", lifecycle=lifecycle)
    await start_generation(None, None, None, lifecycle=lifecycle)
    await lifecycle.scheduler.wait()

    await regenerate_sticker(2, "See you!", lifecycle=lifecycle)

    assert lifecycle.plan[2].caption == "See you!"
    assert lifecycle.plan[3].caption == "A3"

    await start_generation(None, None, None, lifecycle=lifecycle)
    await lifecycle.scheduler.wait()

    assert lifecycle.scheduler.ledger.get(2).caption_snapshot == "See you!"
    assert fake_client.grid_calls[-2] == ["A0", "A1", "See you!", "A3"]


@pytest.mark.asyncio
async def test_start_generation_refused_while_regenerating(fake_client, lifecycle):
    await create_plan(8, None, None, lifecycle=lifecycle)
    await start_generation(None, None, None, lifecycle=lifecycle)
    await lifecycle.scheduler.wait()

    release = asyncio.Event()
    original = fake_client.generate_single

    async def slow_single(*args, **kwargs):
        await release.wait()
        return await original(*args, **kwargs)

    fake_client.generate_single = slow_single
    regeneration = asyncio.create_task(regenerate_sticker(0, None, lifecycle=lifecycle))
    for _ in range(100):
        if lifecycle.scheduler.is_running:
            break
        await asyncio.sleep(0.01)

    with pytest.raises(ToolError, match="already in progress"):
        await start_generation(None, None, None, lifecycle=lifecycle)

    release.set()
    assert (await regeneration)["status"] == "success"


@pytest.mark.asyncio
async def test_start_generation_with_strategy_and_reference(fake_client, lifecycle, tmp_path):
    photo = tmp_path / "me.png"
    Image.new("RGB", (1600, 800), (0, 0, 0)).save(photo)
    await create_plan(8, None, None, lifecycle=lifecycle)

    started = await start_generation(None, str(photo), "grid", lifecycle=lifecycle)
    await lifecycle.scheduler.wait()

    assert started["style_id"] == "shojo_manga"
    reference = fake_client.references[0]
    assert reference.mime_type == "image/jpeg"


@pytest.mark.asyncio
async def test_start_generation_guards(lifecycle, tmp_path):
    with pytest.raises(ToolError, match="create_plan"):
        await start_generation(None, None, None, lifecycle=lifecycle)

    await create_plan(8, None, None, lifecycle=lifecycle)
    with pytest.raises(ToolError, match="Unknown style"):
        await start_generation("nope", None, None, lifecycle=lifecycle)
    with pytest.raises(ToolError, match="does not exist"):
        await start_generation(None, str(tmp_path / "missing.png"), None, lifecycle=lifecycle)
    with pytest.raises(ToolError, match="Unknown strategy"):
        await start_generation(None, None, "turbo", lifecycle=lifecycle)


@pytest.mark.asyncio
async def test_check_status_before_any_run(lifecycle):
    status = await check_status(lifecycle=lifecycle)
    assert status["state"] == "idle"
    assert status["stickers"] == []


@pytest.mark.asyncio
async def test_tools_require_a_run(lifecycle, tmp_path):
    with pytest.raises(ToolError):
        await cancel_generation(lifecycle=lifecycle)
    with pytest.raises(ToolError):
        await regenerate_sticker(0, None, lifecycle=lifecycle)
    with pytest.raises(ToolError):
        await export_pack(str(tmp_path), lifecycle=lifecycle)


@pytest.mark.asyncio
async def test_cancel_generation_keeps_finished(lifecycle):
    lifecycle.config.scheduler.grid.batch_delay = 30
    await create_plan(8, None, None, lifecycle=lifecycle)
    await start_generation(None, None, None, lifecycle=lifecycle)

    scheduler = lifecycle.scheduler
    for _ in range(200):
        if scheduler.ledger.counts()["success"] == 4:
            break
        await asyncio.sleep(0.01)

    status = await cancel_generation(lifecycle=lifecycle)
    assert status["state"] == "cancelled"
    assert status["counts"]["success"] == 4
    assert status["counts"]["pending"] == 4
