"""
YAML file content catalog.

The file lists sources with their items:

    sources:
      - name: Tech Daily
        type: article
        selected: true
        items:
          - id: td-1
            title: Chip makers report record quarter
            preview: ...
            age_hours: 3
            metadata:
              wordCount: 640

`age_hours` may be given instead of `published_at` so fixtures stay fresh.
"""
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from pydantic import ValidationError

from daybrief.aggregators.base import CatalogUnavailableError
from daybrief.aggregators.memory_catalog import InMemoryCatalog
from daybrief.utils.logger import logger
from daybrief.utils.models import ContentItem, Source, ensure_utc, utcnow


class FileCatalog(InMemoryCatalog):
    """Catalog loaded lazily from a YAML file"""

    def __init__(self, path: Union[str, Path], now: Optional[datetime] = None):
        super().__init__()
        self.path = Path(path)
        self._now = ensure_utc(now) if now else None
        self._loaded = False

    def load(self) -> None:
        """Read the file; raises CatalogUnavailableError when it cannot be used"""
        if self._loaded:
            return

        if not self.path.exists():
            raise CatalogUnavailableError(f"Catalog file not found: {self.path}")

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CatalogUnavailableError(f"Cannot read catalog file {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get('sources', []), list):
            raise CatalogUnavailableError(f"Catalog file {self.path} must contain a 'sources' list")

        now = self._now or utcnow()
        for entry in data.get('sources', []):
            self._load_source(entry, now)

        self._loaded = True
        logger.info(f"Loaded {len(self.sources)} sources from {self.path}")

    def _load_source(self, entry: Dict[str, Any], now: datetime) -> None:
        try:
            source = Source(
                id=entry.get('id', ''),
                name=entry['name'],
                content_type=entry.get('type', 'article'),
                description=entry.get('description', ''),
                handle=entry.get('handle'),
                feed_url=entry.get('feed_url'),
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise CatalogUnavailableError(f"Invalid source entry in {self.path}: {e}") from e

        items: List[ContentItem] = []
        for raw in entry.get('items', []) or []:
            item = self._parse_item(raw, source, now)
            if item is not None:
                items.append(item)

        self.add_source(source, items, selected=bool(entry.get('selected', True)))

    def _parse_item(self, raw: Dict[str, Any], source: Source, now: datetime) -> Optional[ContentItem]:
        """Build an item; malformed entries are skipped"""
        try:
            fields = dict(raw)
            age_hours = fields.pop('age_hours', None)
            if age_hours is not None and 'published_at' not in fields:
                fields['published_at'] = now - timedelta(hours=float(age_hours))
            return ContentItem(source=source, **fields)
        except (TypeError, ValueError, ValidationError) as e:
            logger.warning(f"Skipping malformed item in source '{source.name}': {e}")
            return None

    def find_item(self, content_id: str) -> Optional[ContentItem]:
        self.load()
        return super().find_item(content_id)

    async def get_selected_source_ids(self) -> Set[str]:
        self.load()
        return await super().get_selected_source_ids()

    async def fetch_candidates(self, source_id: str) -> List[ContentItem]:
        self.load()
        return await super().fetch_candidates(source_id)
