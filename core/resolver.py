"""
Channel identifier resolution.

Users register channels with whatever they have at hand: a full profile URL,
an @handle, a legacy username, or the canonical channel ID. This module turns
that input into a canonical ResolvedIdentity using an ordered chain of
strategies, cheapest and most specific first:

1. canonical ID fast path   (directory lookup by id)
2. handle                   (directory lookup by handle)
3. legacy username / custom (directory lookup by username)
4. free-text search         (first channel-typed result)

Each strategy returns a ResolvedIdentity or None. A directory failure inside
a strategy is logged and counts as None; only exhaustion of the whole chain
reports "not found" to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence, Tuple
from urllib.parse import urlparse

from core.errors import InvalidIdentifier
from core.models import ResolvedIdentity
from shared.logging.logger import get_logger

log = get_logger("core.resolver")


class ChannelDirectory(Protocol):
    """Directory lookups used only by the resolver."""

    async def lookup_by_id(self, channel_id: str) -> Optional[ResolvedIdentity]: ...

    async def lookup_by_handle(self, handle: str) -> Optional[ResolvedIdentity]: ...

    async def lookup_by_username(self, username: str) -> Optional[ResolvedIdentity]: ...

    async def search_by_text(self, query: str) -> Optional[ResolvedIdentity]: ...


# ----------------------------------------------------------------------
# Identifier classification
# ----------------------------------------------------------------------

class IdentifierKind(Enum):
    CANONICAL = "canonical"
    HANDLE = "handle"
    URL_PATH = "url_path"
    PLAIN_TEXT = "plain_text"


@dataclass(frozen=True)
class IdentifierShape:
    """Platform-specific shape of canonical IDs and profile URLs."""

    canonical_prefix: str = "UC"
    canonical_length: int = 24
    url_marker: str = "youtube.com/"
    reserved_paths: Tuple[str, ...] = ("channel", "results", "feed", "watch")

    def is_canonical(self, value: str) -> bool:
        return value.startswith(self.canonical_prefix) and len(value) == self.canonical_length


YOUTUBE_SHAPE = IdentifierShape()


@dataclass(frozen=True)
class ClassifiedIdentifier:
    """
    Tagged view of a raw identifier.

    - raw: trimmed user input
    - canonical_id: set when the input is (or embeds) a canonical ID
    - handle: handle name without the leading "@"
    - fragment: best name for username lookup and text search
    """

    kind: IdentifierKind
    raw: str
    canonical_id: Optional[str] = None
    handle: Optional[str] = None
    fragment: Optional[str] = None

    @property
    def search_query(self) -> str:
        return self.fragment or self.raw


def _url_parts(raw: str) -> Optional[List[str]]:
    candidate = raw if "://" in raw else f"https://{raw}"
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return None
    if not parsed.netloc:
        return None
    return [part for part in parsed.path.split("/") if part]


def classify_identifier(
    raw: str,
    shape: IdentifierShape = YOUTUBE_SHAPE,
) -> ClassifiedIdentifier:
    if raw is None or not isinstance(raw, str) or not raw.strip():
        raise InvalidIdentifier("Channel identifier must be a non-empty string")

    value = raw.strip()

    if shape.is_canonical(value):
        return ClassifiedIdentifier(
            kind=IdentifierKind.CANONICAL,
            raw=value,
            canonical_id=value,
            fragment=value,
        )

    if value.startswith("@"):
        handle = value[1:]
        return ClassifiedIdentifier(
            kind=IdentifierKind.HANDLE,
            raw=value,
            handle=handle or None,
            fragment=handle or None,
        )

    if shape.url_marker in value:
        parts = _url_parts(value)
        if parts is None:
            log.warning(f"[resolver] Could not parse identifier as URL: {value!r}; using it as is")
            return ClassifiedIdentifier(kind=IdentifierKind.PLAIN_TEXT, raw=value, fragment=value)

        if parts:
            head = parts[0]
            if head.startswith("@") and len(head) > 1:
                return ClassifiedIdentifier(
                    kind=IdentifierKind.HANDLE,
                    raw=value,
                    handle=head[1:],
                    fragment=head[1:],
                )
            if head == "channel" and len(parts) > 1 and shape.is_canonical(parts[1]):
                return ClassifiedIdentifier(
                    kind=IdentifierKind.CANONICAL,
                    raw=value,
                    canonical_id=parts[1],
                    fragment=value,
                )
            if head in {"c", "user"} and len(parts) > 1:
                return ClassifiedIdentifier(kind=IdentifierKind.URL_PATH, raw=value, fragment=parts[1])
            if len(parts) == 1 and head not in shape.reserved_paths:
                return ClassifiedIdentifier(kind=IdentifierKind.URL_PATH, raw=value, fragment=head)

        return ClassifiedIdentifier(kind=IdentifierKind.URL_PATH, raw=value, fragment=value)

    return ClassifiedIdentifier(kind=IdentifierKind.PLAIN_TEXT, raw=value, fragment=value)


# ----------------------------------------------------------------------
# Strategies
# ----------------------------------------------------------------------

Strategy = Callable[[ClassifiedIdentifier, ChannelDirectory], Awaitable[Optional[ResolvedIdentity]]]


async def by_canonical_id(
    ident: ClassifiedIdentifier,
    directory: ChannelDirectory,
) -> Optional[ResolvedIdentity]:
    if not ident.canonical_id:
        return None
    log.info(f"[resolver] {ident.canonical_id!r} looks canonical; verifying")
    result = await directory.lookup_by_id(ident.canonical_id)
    if result is None:
        log.warning(
            f"[resolver] Canonical ID {ident.canonical_id!r} did not return a channel; "
            "continuing with fallbacks"
        )
    return result


async def by_handle(
    ident: ClassifiedIdentifier,
    directory: ChannelDirectory,
) -> Optional[ResolvedIdentity]:
    if not ident.handle:
        return None
    log.info(f"[resolver] Resolving by handle @{ident.handle}")
    return await directory.lookup_by_handle(ident.handle)


async def by_username(
    ident: ClassifiedIdentifier,
    directory: ChannelDirectory,
) -> Optional[ResolvedIdentity]:
    username = ident.fragment
    if not username:
        return None
    if ident.handle and username == ident.handle:
        # Same string already failed as a handle
        return None
    log.info(f"[resolver] Resolving by username/custom URL {username!r}")
    return await directory.lookup_by_username(username)


async def by_search(
    ident: ClassifiedIdentifier,
    directory: ChannelDirectory,
) -> Optional[ResolvedIdentity]:
    query = ident.search_query
    log.info(f"[resolver] Fallback search with query {query!r}")
    return await directory.search_by_text(query)


DEFAULT_STRATEGIES: Tuple[Strategy, ...] = (
    by_canonical_id,
    by_handle,
    by_username,
    by_search,
)


async def first_success(
    strategies: Sequence[Strategy],
    ident: ClassifiedIdentifier,
    directory: ChannelDirectory,
) -> Optional[ResolvedIdentity]:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        try:
            result = await strategy(ident, directory)
        except Exception as e:
            log.warning(f"[resolver] Strategy {name} failed for {ident.raw!r}: {e}")
            continue

        if result is not None and result.channel_id:
            log.info(
                f"[resolver] {ident.raw!r} resolved via {name} to "
                f"{result.channel_id} ({result.channel_name})"
            )
            return result
    return None


# ----------------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------------

class IdentifierResolver:
    """
    Resolve heterogeneous channel references against a ChannelDirectory.

    resolve() raises InvalidIdentifier for blank input and returns None when
    every strategy comes up empty.
    """

    def __init__(
        self,
        directory: ChannelDirectory,
        *,
        shape: IdentifierShape = YOUTUBE_SHAPE,
        strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
    ):
        self._directory = directory
        self._shape = shape
        self._strategies = tuple(strategies)

    @property
    def shape(self) -> IdentifierShape:
        return self._shape

    def classify(self, raw: str) -> ClassifiedIdentifier:
        return classify_identifier(raw, self._shape)

    async def resolve(self, raw: str) -> Optional[ResolvedIdentity]:
        ident = self.classify(raw)
        log.info(f"[resolver] Resolving {ident.raw!r} (kind={ident.kind.value})")

        result = await first_success(self._strategies, ident, self._directory)
        if result is None:
            log.error(f"[resolver] Failed to resolve {ident.raw!r} after all attempts")
        return result
