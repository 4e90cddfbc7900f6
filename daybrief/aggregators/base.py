"""
Base content catalog interface
"""
from abc import ABC, abstractmethod
from typing import List, Set

from daybrief.utils.models import ContentItem


class CatalogError(Exception):
    """Base error raised by content catalogs."""

    pass


class CatalogUnavailableError(CatalogError):
    """The catalog as a whole cannot be reached; fails the generation."""

    pass


class SourceNotFoundError(CatalogError):
    """A single source is unknown to the catalog."""

    pass


class BaseCatalog(ABC):
    """Supplies the selected sources and their candidate items"""

    @abstractmethod
    async def get_selected_source_ids(self) -> Set[str]:
        """Identifiers of the sources the user selected"""
        pass

    @abstractmethod
    async def fetch_candidates(self, source_id: str) -> List[ContentItem]:
        """Candidate items of one source; may fail independently per source"""
        pass
