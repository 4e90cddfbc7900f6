"""
Main entry point for the daily brief engine
"""

import asyncio
import argparse
import logging
import sys
from typing import Optional

from daybrief.aggregators.base import CatalogError
from daybrief.aggregators.file_catalog import FileCatalog
from daybrief.engine.brief_generator import DailyBriefGenerator
from daybrief.generators.json_generator import BriefJSONGenerator
from daybrief.storage.engagement_store import SqlEngagementStore, create_engagement_store
from daybrief.utils.config import Config
from daybrief.utils.logger import setup_logging
from daybrief.utils.models import BriefMode, DailyBrief, EngagementAction

logger = logging.getLogger(__name__)


class DailyBriefApp:
    """Wires the file catalog, engagement store and the generator together"""

    def __init__(self, catalog_path: str, config: Optional[Config] = None):
        self.config = config or Config()
        self.catalog = FileCatalog(catalog_path)
        self.engagement_store = create_engagement_store(self.config.engagement)
        self.generator = DailyBriefGenerator(
            self.catalog, self.engagement_store, config=self.config
        )

    async def generate(self, mode: Optional[BriefMode] = None, output_dir: Optional[str] = None) -> Optional[DailyBrief]:
        if isinstance(self.engagement_store, SqlEngagementStore):
            self.engagement_store.prune()

        brief = await self.generator.generate_brief(mode)
        if brief is None:
            logger.error(f"Brief generation failed: {self.generator.last_error}")
            return None

        output = BriefJSONGenerator(output_dir or self.config.output.directory)
        output.generate(brief)
        return brief

    def engage(
        self,
        content_id: str,
        action: str,
        time_spent: float = 0.0,
        brief_item_id: Optional[str] = None,
    ) -> bool:
        content = self.catalog.find_item(content_id)
        if content is None:
            logger.warning(f"Content {content_id} is not in the catalog")
        return self.generator.record_engagement(
            brief_item_id or content_id, content_id, time_spent, action, content=content
        )


def print_brief(brief: DailyBrief) -> None:
    print(f"\n{brief.mode.display_name} ({brief.read_time_minutes} min, {len(brief.items)} items)")
    if not brief.items:
        print("   Nothing new from your sources")
        return
    for item in brief.items:
        print(f"\n   [{item.category.display_name}] {item.content.title}")
        print(f"   {item.content.source.name} - {item.reason_text}")
        print(f"   {item.summary}")
        if item.context:
            print(f"   {item.context}")


async def main(args) -> int:
    """Main entry point"""
    config = Config(args.config)
    setup_logging(config.logging)

    app = DailyBriefApp(args.catalog, config)

    if args.command == "generate":
        mode = BriefMode(args.mode) if args.mode else None
        brief = await app.generate(mode, args.output_dir)
        if brief is None:
            return 1
        print_brief(brief)
        return 0

    try:
        recorded = app.engage(args.content_id, args.action, args.time_spent, args.brief_item_id)
    except CatalogError as e:
        logger.error(f"Cannot record engagement: {e}")
        return 1
    return 0 if recorded else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Daily brief - a short personalized digest of your sources"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate today's brief")
    generate.add_argument("--catalog", required=True, help="YAML file listing sources and items")
    generate.add_argument(
        "--mode",
        choices=[mode.value for mode in BriefMode],
        help="Brief mode (auto-detected from local time when omitted)",
    )
    generate.add_argument("--output-dir", help="Directory for the JSON output")
    generate.add_argument("--config", help="YAML configuration file")

    engage = subparsers.add_parser("engage", help="Record engagement with an item")
    engage.add_argument("--catalog", required=True, help="YAML file listing sources and items")
    engage.add_argument("--content-id", required=True)
    engage.add_argument(
        "--action",
        required=True,
        choices=[action.value for action in EngagementAction],
    )
    engage.add_argument("--time-spent", type=float, default=0.0, help="Seconds spent on the item")
    engage.add_argument("--brief-item-id", help="Brief item id (defaults to the content id)")
    engage.add_argument("--config", help="YAML configuration file")

    return parser


if __name__ == "__main__":
    args = build_parser().parse_args()
    sys.exit(asyncio.run(main(args)))
