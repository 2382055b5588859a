import logging
import re
from dataclasses import dataclass
from typing import Generic, Iterable, TypeVar
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

S = TypeVar("S")

# First-match regex routing with path rewriting


@dataclass(frozen=True)
class MatchResult(Generic[S]):
    service: S
    match: re.Match[str]
    url: str


def split_url(url: str) -> tuple[str, str]:
    """
    Split a URL into its path and raw query string.

    The query string keeps its leading '?' and is returned exactly as given;
    the fragment is dropped. Scheme and authority of absolute URLs are not
    part of the path.
    :return: (path, query)
    """
    url = url.partition("#")[0]
    path, sep, query = url.partition("?")
    try:
        parts = urlsplit(path)
    except ValueError:
        # unparseable authority, e.g. an unclosed IPv6 bracket
        return path, sep + query
    if parts.scheme:
        path = parts.path
    return path, sep + query


class Router(Generic[S]):
    """
    Ordered list of (pattern, service) pairs, tried first to last.

    Entries are copied at construction; pattern strings are compiled there too,
    so a bad pattern fails early with re.error.

    Known quirk: the rewritten path drops as many leading characters as the
    matched text is long. For an unanchored pattern that matches past the
    start, e.g. r"/b" against "/a/b/c", that keeps "/b/c" rather than "/c".
    """
    def __init__(self, entries: Iterable[tuple[str | re.Pattern[str], S]]):
        self._entries: tuple[tuple[re.Pattern[str], S], ...] = tuple(
            (re.compile(pattern) if isinstance(pattern, str) else pattern, service)
            for pattern, service in entries
        )

    @property
    def entries(self) -> tuple[tuple[re.Pattern[str], S], ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def match(self, url: str) -> MatchResult[S] | None:
        path, query = split_url(url)
        for pattern, service in self._entries:
            match = pattern.search(path)
            if match:
                # Truncates by matched length, not by match end.
                rewritten = (path[len(match.group(0)):] or "/") + query
                logger.debug("%s matched %s -> %s", url, pattern.pattern, rewritten)
                return MatchResult(service, match, rewritten)
        return None


def create_router(entries: Iterable[tuple[str | re.Pattern[str], S]]) -> Router[S]:
    return Router(entries)
