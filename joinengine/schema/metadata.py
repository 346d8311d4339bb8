"""
Metadata Resolver

Maps physical table identifiers (e.g. "ds2_42d115c3") to the logical names the
ingestion pipeline recorded in the metadata side table
(e.g. "Order Items - ecommerce.xlsx" -> "orderitems").
"""

from typing import Dict, Optional

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from joinengine.config.settings import settings
from joinengine.schema.models import LogicalName
from joinengine.schema.naming import clean_logical_name, name_variants
from joinengine.utils.errors import MetadataUnavailable


def build_logical_name(physical_name: str, display_name: str) -> Optional[LogicalName]:
    """Clean a display name into a LogicalName; None when nothing usable remains"""
    cleaned = clean_logical_name(display_name)
    if not cleaned:
        return None
    return LogicalName(
        physical_name=physical_name,
        display_name=display_name,
        name=cleaned,
        variants=name_variants(cleaned),
    )


class MetadataResolver:
    """
    Read-only view of the table metadata side table.

    Usage:
        resolver = MetadataResolver(engine)
        logical = resolver.resolve(data_source_id=2, schema_name="public")
        logical["ds2_42d115c3"].name  # "orderitems"
    """

    def __init__(self, engine: Engine, table_name: Optional[str] = None):
        self.engine = engine
        self.table_name = table_name or settings.metadata_table

    def _query(self):
        return text(
            f"SELECT physical_table_name, logical_table_name "
            f"FROM {self.table_name} "
            f"WHERE data_source_id = :data_source_id AND schema_name = :schema_name"
        )

    def resolve(self, data_source_id: int, schema_name: str) -> Dict[str, LogicalName]:
        """
        Load the logical names of every table registered for a data source.

        Raises:
            MetadataUnavailable: the metadata store cannot be queried
        """
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    self._query(),
                    {"data_source_id": data_source_id, "schema_name": schema_name},
                ).fetchall()
        except SQLAlchemyError as e:
            raise MetadataUnavailable(data_source_id, schema_name, str(e)) from e

        mapping: Dict[str, LogicalName] = {}
        for physical_name, display_name in rows:
            if not physical_name:
                continue
            logical = build_logical_name(physical_name, display_name or "")
            if logical is None:
                logger.debug(f"Skipping metadata row for {physical_name}: empty logical name")
                continue
            mapping[physical_name] = logical

        logger.debug(f"Resolved {len(mapping)} logical names for ds{data_source_id}:{schema_name}")
        return mapping
