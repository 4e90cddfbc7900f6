"""
In-memory content catalog
"""
from typing import Dict, Iterable, List, Optional, Set

from daybrief.aggregators.base import BaseCatalog, SourceNotFoundError
from daybrief.utils.models import ContentItem, Source


class InMemoryCatalog(BaseCatalog):
    """Catalog holding sources and items in memory"""

    def __init__(self):
        self.sources: Dict[str, Source] = {}
        self._items: Dict[str, List[ContentItem]] = {}
        self._selected: Set[str] = set()

    def add_source(self, source: Source, items: Optional[Iterable[ContentItem]] = None, selected: bool = True) -> Source:
        self.sources[source.id] = source
        self._items[source.id] = list(items or [])
        if selected:
            self._selected.add(source.id)
        return source

    def add_items(self, source_id: str, items: Iterable[ContentItem]) -> None:
        if source_id not in self.sources:
            raise SourceNotFoundError(f"Unknown source: {source_id}")
        self._items[source_id].extend(items)

    def select(self, source_id: str) -> None:
        if source_id not in self.sources:
            raise SourceNotFoundError(f"Unknown source: {source_id}")
        self._selected.add(source_id)

    def deselect(self, source_id: str) -> None:
        self._selected.discard(source_id)

    def find_item(self, content_id: str) -> Optional[ContentItem]:
        for items in self._items.values():
            for item in items:
                if item.id == content_id:
                    return item
        return None

    async def get_selected_source_ids(self) -> Set[str]:
        return set(self._selected)

    async def fetch_candidates(self, source_id: str) -> List[ContentItem]:
        if source_id not in self.sources:
            raise SourceNotFoundError(f"Unknown source: {source_id}")
        return list(self._items[source_id])
