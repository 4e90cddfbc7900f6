"""
JSON output generator
"""
import json
from pathlib import Path
from typing import Any, Dict, Union

from daybrief.utils.models import DailyBrief
from daybrief.utils.logger import logger


class BriefJSONGenerator:
    """Writes a generated brief to a JSON file"""

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)

    def to_dict(self, brief: DailyBrief) -> Dict[str, Any]:
        # Convert brief to dict using Pydantic's model_dump
        data = brief.model_dump(mode='json')
        data['read_time_minutes'] = brief.read_time_minutes
        data['mode_name'] = brief.mode.display_name
        for item_data, item in zip(data['items'], brief.items):
            item_data['reason_text'] = item.reason_text
            item_data['category_name'] = item.category.display_name
        return data

    def generate(self, brief: DailyBrief) -> Path:
        """Generate the JSON output file and return its path"""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_file = self.output_dir / f"brief-{brief.created_at.strftime('%Y-%m-%d')}-{brief.mode.value}.json"

        # Write to file with pretty formatting
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(brief), f, indent=2, ensure_ascii=False, default=str)

        logger.info(f"JSON generated: {output_file} ({len(brief.items)} items)")
        return output_file
