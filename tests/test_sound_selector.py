"""Tests for creepy_companion.services.sound_selector."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from creepy_companion.models.pet import Archetype, ItemType, Stage
from creepy_companion.services.sound_selector import SoundContext, SoundSelector

URL = "http://sound.test/api/selectSound"


def _context(**overrides) -> SoundContext:
    fields = dict(pet_name="Test", stage=Stage.BABY, archetype=Archetype.ECHO,
                  sanity=80.0, corruption=10.0)
    fields.update(overrides)
    return SoundContext(**fields)


def _mock_response(body, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


class TestSoundSelector:
    async def test_selection_parsed(self) -> None:
        body = {"primarySound": "sfx_gulp", "secondarySounds": ["sfx_drip"],
                "ambientSound": "ambient_rain_medium_2", "volume": 0.6, "cached": True}
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(body))):
            selection = await SoundSelector(URL).select("feed", _context())
        assert selection.primary_sound == "sfx_gulp"
        assert selection.secondary_sounds == ["sfx_drip"]
        assert selection.volume == 0.6
        assert selection.cached

    async def test_request_uses_camel_case_and_skips_empty_fields(self) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"primarySound": "x"}))
        with patch("httpx.AsyncClient.post", mock_post):
            await SoundSelector(URL).select("scavenge", _context(item_type=ItemType.ROT))
        body = mock_post.call_args.kwargs["json"]
        assert body["eventType"] == "scavenge"
        assert body["context"] == {"petName": "Test", "stage": "BABY", "archetype": "ECHO",
                                   "sanity": 80.0, "corruption": 10.0, "itemType": "ROT"}

    async def test_http_failure_returns_none(self) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response({}, 503))):
            assert await SoundSelector(URL).select("feed", _context()) is None

    async def test_network_failure_returns_none(self) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(side_effect=httpx.ConnectError("down"))):
            assert await SoundSelector(URL).select("death", _context()) is None

    async def test_malformed_selection_returns_none(self) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response({"volume": 1}))):
            assert await SoundSelector(URL).select("feed", _context()) is None
