"""Tests for channel identifier classification and resolution."""

from unittest.mock import AsyncMock

import pytest

from core.errors import InvalidIdentifier
from core.models import ResolvedIdentity
from core.resolver import IdentifierKind, IdentifierResolver, classify_identifier

from helpers import YOUTUBE_ID

FOUND = ResolvedIdentity(channel_id=YOUTUBE_ID, channel_name="Munchy Streamer")


def directory(**results) -> AsyncMock:
    """Directory whose lookups all miss unless told otherwise."""
    mock = AsyncMock()
    for name in ("lookup_by_id", "lookup_by_handle", "lookup_by_username", "search_by_text"):
        getattr(mock, name).return_value = results.get(name)
    return mock


class TestClassify:
    @pytest.mark.parametrize(
        "raw,kind,canonical,handle,fragment",
        [
            (YOUTUBE_ID, IdentifierKind.CANONICAL, YOUTUBE_ID, None, YOUTUBE_ID),
            ("@munchy", IdentifierKind.HANDLE, None, "munchy", "munchy"),
            ("@", IdentifierKind.HANDLE, None, None, None),
            ("https://www.youtube.com/@munchy", IdentifierKind.HANDLE, None, "munchy", "munchy"),
            ("youtube.com/@munchy/streams", IdentifierKind.HANDLE, None, "munchy", "munchy"),
            ("https://youtube.com/c/MunchyMC", IdentifierKind.URL_PATH, None, None, "MunchyMC"),
            ("https://youtube.com/user/munchyold", IdentifierKind.URL_PATH, None, None, "munchyold"),
            ("https://youtube.com/MunchyMC", IdentifierKind.URL_PATH, None, None, "MunchyMC"),
            ("Munchy Streamer", IdentifierKind.PLAIN_TEXT, None, None, "Munchy Streamer"),
        ],
    )
    def test_shapes(self, raw, kind, canonical, handle, fragment):
        ident = classify_identifier(raw)

        assert ident.kind is kind
        assert ident.canonical_id == canonical
        assert ident.handle == handle
        assert ident.fragment == fragment

    def test_channel_url_is_canonical(self):
        ident = classify_identifier(f"https://www.youtube.com/channel/{YOUTUBE_ID}")

        assert ident.kind is IdentifierKind.CANONICAL
        assert ident.canonical_id == YOUTUBE_ID

    def test_reserved_path_falls_back_to_whole_url(self):
        ident = classify_identifier("https://www.youtube.com/feed")

        assert ident.kind is IdentifierKind.URL_PATH
        assert ident.fragment == "https://www.youtube.com/feed"

    def test_uc_prefix_with_wrong_length_is_not_canonical(self):
        assert classify_identifier("UCshort").kind is IdentifierKind.PLAIN_TEXT

    def test_input_is_trimmed(self):
        assert classify_identifier("  @munchy  ").handle == "munchy"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_input_is_invalid(self, raw):
        with pytest.raises(InvalidIdentifier):
            classify_identifier(raw)


class TestResolve:
    @pytest.mark.asyncio
    async def test_canonical_makes_exactly_one_call(self):
        d = directory(lookup_by_id=FOUND)

        result = await IdentifierResolver(d).resolve(YOUTUBE_ID)

        assert result == FOUND
        d.lookup_by_id.assert_awaited_once_with(YOUTUBE_ID)
        d.lookup_by_handle.assert_not_awaited()
        d.lookup_by_username.assert_not_awaited()
        d.search_by_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handle_wins_over_search(self):
        d = directory(
            lookup_by_handle=FOUND,
            search_by_text=ResolvedIdentity("UCzzzzzzzzzzzzzzzzzzzzzz", "Someone Else"),
        )

        result = await IdentifierResolver(d).resolve("https://youtube.com/@munchy")

        assert result == FOUND
        d.lookup_by_handle.assert_awaited_once_with("munchy")
        d.search_by_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_username_skipped_when_equal_to_handle(self):
        d = directory(search_by_text=FOUND)

        result = await IdentifierResolver(d).resolve("@munchy")

        assert result == FOUND
        d.lookup_by_username.assert_not_awaited()
        d.search_by_text.assert_awaited_once_with("munchy")

    @pytest.mark.asyncio
    async def test_bare_at_sign_goes_straight_to_search(self):
        d = directory(search_by_text=FOUND)

        result = await IdentifierResolver(d).resolve("@")

        assert result == FOUND
        d.lookup_by_handle.assert_not_awaited()
        d.lookup_by_username.assert_not_awaited()
        d.search_by_text.assert_awaited_once_with("@")

    @pytest.mark.asyncio
    async def test_custom_url_tries_username_then_search(self):
        d = directory(search_by_text=FOUND)

        result = await IdentifierResolver(d).resolve("https://youtube.com/c/MunchyMC")

        assert result == FOUND
        d.lookup_by_handle.assert_not_awaited()
        d.lookup_by_username.assert_awaited_once_with("MunchyMC")
        d.search_by_text.assert_awaited_once_with("MunchyMC")

    @pytest.mark.asyncio
    async def test_stale_canonical_falls_through(self):
        d = directory(search_by_text=FOUND)

        result = await IdentifierResolver(d).resolve(YOUTUBE_ID)

        assert result == FOUND
        d.lookup_by_id.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_strategy_is_skipped(self):
        d = directory(search_by_text=FOUND)
        d.lookup_by_handle.side_effect = RuntimeError("quota exceeded")

        assert await IdentifierResolver(d).resolve("@munchy") == FOUND

    @pytest.mark.asyncio
    async def test_exhausted_chain_returns_none(self):
        assert await IdentifierResolver(directory()).resolve("nobody at all") is None

    @pytest.mark.asyncio
    async def test_blank_raises_before_any_lookup(self):
        d = directory()

        with pytest.raises(InvalidIdentifier):
            await IdentifierResolver(d).resolve("  ")

        d.lookup_by_id.assert_not_awaited()
        d.search_by_text.assert_not_awaited()
