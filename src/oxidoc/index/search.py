"""Query resolution against the documentation store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Tuple

from rapidfuzz.distance import Levenshtein

from oxidoc.errors import CorruptEntry, NotFound, StoreCorrupt
from oxidoc.index.storage import DocumentStore
from oxidoc.models import PATH_SEPARATOR, CrateMetadata, Item, split_path

LOGGER = logging.getLogger(__name__)

# (query, item name) -> whether the item matches a bare-name query
Matcher = Callable[[str, str], bool]


def exact_match(query: str, name: str) -> bool:
    return query == name


def substring_match(query: str, name: str) -> bool:
    return query.lower() in name.lower()


def subsequence_match(query: str, name: str) -> bool:
    """Characters of ``query`` appear in ``name`` in order, ignoring case."""
    remaining = iter(name.lower())
    return all(char in remaining for char in query.lower())


def edit_distance(query: str, name: str) -> int:
    return Levenshtein.distance(query.lower(), name.lower())


def levenshtein_match(query: str, name: str) -> bool:
    """``name`` is a few single-character edits away from ``query``, ignoring case.

    One edit is allowed per three query characters, and always at least one.
    """
    limit = max(1, len(query) // 3)
    return Levenshtein.distance(query.lower(), name.lower(), score_cutoff=limit) <= limit


MATCHERS: Dict[str, Matcher] = {
    "exact": exact_match,
    "substring": substring_match,
    "subsequence": subsequence_match,
    "levenshtein": levenshtein_match,
}

# Matchers whose candidates are ranked by a distance to the query, smallest first.
RANKINGS: Dict[Matcher, Callable[[str, str], int]] = {
    levenshtein_match: edit_distance,
}


class MatchKind(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    NAME = "name"


@dataclass(slots=True)
class SearchResult:
    item: Item
    match: MatchKind


class Resolver:
    """Resolves bare names and qualified paths to stored items."""

    def __init__(self, store: DocumentStore, matcher: Matcher = exact_match) -> None:
        self.store = store
        self.matcher = matcher

    def resolve(self, query: str) -> List[Item]:
        return [result.item for result in self.search(query)]

    def search(self, query: str) -> List[SearchResult]:
        """Return matches for ``query``, most specific first.

        An empty list means nothing is documented under that name. Damaged entries are
        skipped while scanning and reported afterwards as :class:`StoreCorrupt`, which
        carries the results that could still be resolved.
        """
        query = query.strip()
        if not query:
            return []

        corrupt: List[CorruptEntry] = []
        if PATH_SEPARATOR in query:
            results = self._resolve_path(split_path(query), corrupt)
        else:
            results = self._resolve_name(query, corrupt)

        if corrupt:
            # one damaged file can be reached by the exact read and by the crate scan
            unique = {str(error.path): error for error in corrupt}
            raise StoreCorrupt(list(unique.values()), results)
        LOGGER.debug("Query %r resolved to %d items", query, len(results))
        return results

    def _crates(self, corrupt: List[CorruptEntry]) -> List[CrateMetadata]:
        return self.store.latest_crates(corrupt)

    def _crate_items(self, metadata: CrateMetadata, corrupt: List[CorruptEntry]) -> List[Item]:
        try:
            return self.store.list((metadata.lib_name,), version=metadata.version)
        except CorruptEntry as exc:
            LOGGER.error("Skipping %s: %s", metadata, exc)
            corrupt.append(exc)
            return []

    def _resolve_path(
        self, segments: Tuple[str, ...], corrupt: List[CorruptEntry]
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        try:
            results.append(SearchResult(self.store.read(segments), MatchKind.EXACT))
        except NotFound:
            pass
        except CorruptEntry as exc:
            corrupt.append(exc)

        size = len(segments)
        for metadata in self._crates(corrupt):
            for item in self._crate_items(metadata, corrupt):
                path = item.qualified_path
                if path != segments and len(path) > size and path[-size:] == segments:
                    results.append(SearchResult(item, MatchKind.PARTIAL))
        return results

    def _resolve_name(self, query: str, corrupt: List[CorruptEntry]) -> List[SearchResult]:
        rank = RANKINGS.get(self.matcher)
        results: List[SearchResult] = []
        for metadata in self._crates(corrupt):
            matches = [
                item
                for item in self._crate_items(metadata, corrupt)
                if self.matcher(query, item.name)
            ]
            if matches:
                best = min(
                    matches,
                    key=lambda item: (
                        item.name != query,
                        rank(query, item.name) if rank else 0,
                        len(item.qualified_path),
                        item.qualified_path,
                    ),
                )
                results.append(SearchResult(best, MatchKind.NAME))
        return results
