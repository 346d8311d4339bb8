"""
Engine constants

Centralized, non-tunable constants used across inference, validation and compilation.
"""

from typing import Dict, List, Tuple

# ============================================================================
# Naming conventions
# ============================================================================

# Column suffixes that give a column a foreign-key shape (<ref>_id, <ref>_key)
FK_SUFFIXES: Tuple[str, ...] = ("_id", "_key")

# Bare primary-key-looking column name
BARE_ID = "id"

# Business identifiers that link tables when two tables carry the same column
SHARED_IDENTIFIERS: Tuple[str, ...] = ("uuid", "guid", "code", "key", "reference", "ref")

# Irregular plural -> singular forms
IRREGULAR_PLURALS: Dict[str, str] = {
    "people": "person",
    "children": "child",
    "men": "man",
    "women": "woman",
    "mice": "mouse",
}

# File extensions stripped from logical table names
FILE_EXTENSIONS: Tuple[str, ...] = ("xlsx", "xls", "csv", "pdf", "txt", "json")

# ============================================================================
# Type compatibility
# ============================================================================

# Declared types that can be joined with each other (substring match)
TYPE_FAMILIES: List[Tuple[str, ...]] = [
    ("int", "integer", "smallint", "bigint", "serial", "bigserial"),
    ("numeric", "decimal", "real", "double", "float", "money"),
    ("char", "varchar", "text", "character", "string"),
    ("date", "timestamp", "timestamptz", "time", "timetz"),
    ("uuid",),
]

# ============================================================================
# Query model vocabulary
# ============================================================================

# "All rows" sentinel for limit/offset (0 is an explicit zero)
UNBOUNDED = -1

# Target dialect for sqlglot parsing/rendering
SQL_DIALECT = "postgres"
