"""
Tests for the YAML file catalog
"""
from datetime import timedelta

import pytest

from daybrief.aggregators.base import CatalogUnavailableError, SourceNotFoundError
from daybrief.aggregators.file_catalog import FileCatalog
from daybrief.utils.models import SourceType, source_identifier
from conftest import NOW


CATALOG_YAML = """
sources:
  - name: Tech Daily
    type: article
    items:
      - id: td-1
        title: Chip makers report record quarter
        preview: Orders kept climbing.
        age_hours: 3
        metadata:
          wordCount: 640
      - id: td-broken
        title: Missing publication time
  - name: Hard Fork Weekly
    type: podcast
    selected: false
    items:
      - id: hf-1
        title: Episode 1
        published_at: 2026-10-13T08:00:00Z
        progress: 0.25
        metadata:
          duration: 1800
"""


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "sources.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path


class TestFileCatalog:
    """Test loading sources and items from YAML"""

    @pytest.mark.asyncio
    async def test_selected_sources(self, catalog_path):
        catalog = FileCatalog(catalog_path, now=NOW)
        selected = await catalog.get_selected_source_ids()
        assert selected == {source_identifier("Tech Daily", SourceType.ARTICLE)}
        assert len(catalog.sources) == 2

    @pytest.mark.asyncio
    async def test_items_are_parsed(self, catalog_path):
        catalog = FileCatalog(catalog_path, now=NOW)
        source_id = source_identifier("Tech Daily", SourceType.ARTICLE)
        items = await catalog.fetch_candidates(source_id)

        assert [item.id for item in items] == ["td-1"]
        assert items[0].published_at == NOW - timedelta(hours=3)
        assert items[0].metadata_number("wordCount") == 640

    def test_find_item(self, catalog_path):
        catalog = FileCatalog(catalog_path, now=NOW)
        episode = catalog.find_item("hf-1")
        assert episode.content_type == SourceType.PODCAST
        assert episode.progress == 0.25
        assert episode.metadata_duration("duration") == timedelta(minutes=30)
        assert catalog.find_item("nope") is None

    @pytest.mark.asyncio
    async def test_unknown_source(self, catalog_path):
        catalog = FileCatalog(catalog_path, now=NOW)
        with pytest.raises(SourceNotFoundError):
            await catalog.fetch_candidates("unknown")

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        catalog = FileCatalog(tmp_path / "absent.yaml")
        with pytest.raises(CatalogUnavailableError):
            await catalog.get_selected_source_ids()

    @pytest.mark.asyncio
    async def test_invalid_file(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text("sources: [unclosed", encoding="utf-8")
        with pytest.raises(CatalogUnavailableError):
            await FileCatalog(path).get_selected_source_ids()

    @pytest.mark.asyncio
    async def test_source_without_name(self, tmp_path):
        path = tmp_path / "sources.yaml"
        path.write_text("sources:\n  - type: reddit\n", encoding="utf-8")
        with pytest.raises(CatalogUnavailableError):
            await FileCatalog(path).get_selected_source_ids()
