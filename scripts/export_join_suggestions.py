"""
Export inferred join suggestions for one data source to JSON.

Usage:
    python scripts/export_join_suggestions.py <data_source_id> [schema] [output_path]

- Input: live target database (DB_* / DATABASE_URL env vars)
- Output: artifacts/join_suggestions_ds<id>_<schema>.json (default)

Includes:
- every suggestion (high/medium/low confidence, low ones flagged)
- junction tables and the table pairs they bridge
- summary metadata (counts per confidence level, timing)
"""

import asyncio
import json
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from joinengine.config.settings import settings
from joinengine.service import JoinEngineService
from joinengine.utils.logger import setup_logger

ARTIFACTS = os.path.join(os.path.dirname(__file__), "../artifacts")


def ensure_dir(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


async def export_suggestions(data_source_id: int, schema_name: str) -> dict:
    service = JoinEngineService()
    entry, cache_hit = await service.get_suggestion_entry(data_source_id, schema_name)
    return {
        "version": 1,
        "data_source_id": data_source_id,
        "schema_name": schema_name,
        "tables": [
            {
                "name": t.name,
                "logical_name": t.display_name,
                "columns": [c.name for c in t.columns],
            }
            for t in entry.schema.tables
        ],
        "suggestions": [s.to_dict() for s in entry.suggestions],
        "metadata": service.describe(entry, cache_hit),
    }


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    data_source_id = int(sys.argv[1])
    schema_name = sys.argv[2] if len(sys.argv) > 2 else settings.default_schema
    output_path = (
        sys.argv[3]
        if len(sys.argv) > 3
        else os.path.join(ARTIFACTS, f"join_suggestions_ds{data_source_id}_{schema_name}.json")
    )

    setup_logger()
    report = asyncio.run(export_suggestions(data_source_id, schema_name))

    ensure_dir(output_path)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)

    meta = report["metadata"]
    logger.info(f"✅ Wrote join suggestions: {output_path}")
    logger.info(f"Tables: {meta['total_tables']}")
    logger.info(f"Suggestions: {meta['total_suggestions']} {meta['by_confidence']}")
    logger.info(f"Junction tables: {len(meta['junction_tables'])}")


if __name__ == "__main__":
    main()
