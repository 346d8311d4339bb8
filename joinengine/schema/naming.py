"""
Identifier normalization helpers shared by the metadata resolver and the matcher.

All name comparisons happen on the *compact* form of an identifier: lower-cased
with every non-alphanumeric character removed ("Order Items" -> "orderitems",
"order_item" -> "orderitem").
"""

import re
from typing import FrozenSet, Optional

from joinengine.config.constants import (
    BARE_ID,
    FILE_EXTENSIONS,
    FK_SUFFIXES,
    IRREGULAR_PLURALS,
    SHARED_IDENTIFIERS,
    TYPE_FAMILIES,
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_CAMEL_ID = re.compile(r"^([A-Za-z0-9]*[a-z0-9])(Id|ID)$")
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_EXT_GROUP = "|".join(FILE_EXTENSIONS)
_FILENAME_SUFFIX = re.compile(rf"\s*-\s*[^-]+\.({_EXT_GROUP})$", re.IGNORECASE)
_EXTENSION = re.compile(rf"\.({_EXT_GROUP})$", re.IGNORECASE)
_TYPE_ARGS = re.compile(r"\(.*\)")

_IRREGULAR_SINGULARS = {v: k for k, v in IRREGULAR_PLURALS.items()}


def compact(name: str) -> str:
    """Lower-case and strip every non-alphanumeric character."""
    return _NON_ALNUM.sub("", (name or "").lower())


def singularize(word: str) -> str:
    """
    Convert a plural (compact) name to singular for pattern matching.

    Examples:
        >>> singularize("categories")
        'category'
        >>> singularize("orderitems")
        'orderitem'
        >>> singularize("orderstatus")
        'orderstatus'
    """
    if not word:
        return word
    lower = word.lower()

    for plural, singular in IRREGULAR_PLURALS.items():
        if lower.endswith(plural):
            return lower[: -len(plural)] + singular

    if lower.endswith("ies") and len(lower) > 3:
        return lower[:-3] + "y"
    if lower.endswith(("sses", "shes", "ches", "xes", "zes")):
        return lower[:-2]
    if lower.endswith(("ss", "us", "is")):
        return lower
    if lower.endswith("s") and len(lower) > 1:
        return lower[:-1]
    return lower


def pluralize(word: str) -> str:
    """Best-effort plural of a singular (compact) name."""
    if not word:
        return word
    lower = word.lower()

    for singular, plural in _IRREGULAR_SINGULARS.items():
        if lower.endswith(singular):
            return lower[: -len(singular)] + plural

    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
        return lower[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return lower + "es"
    return lower + "s"


def name_variants(name: str) -> FrozenSet[str]:
    """Compact, singular and plural forms of a table name."""
    base = compact(name)
    if not base:
        return frozenset()
    singular = singularize(base)
    return frozenset({base, singular, pluralize(singular)})


def clean_logical_name(display_name: str) -> str:
    """
    Clean an ingestion display name into a compact logical name.

    Handles formats like "Products - ecommerce.xlsx" or "Orders.csv".

    Examples:
        >>> clean_logical_name("Order Items - ecommerce.xlsx")
        'orderitems'
        >>> clean_logical_name("Customers.csv")
        'customers'
    """
    cleaned = (display_name or "").strip()
    cleaned = _FILENAME_SUFFIX.sub("", cleaned)
    cleaned = _EXTENSION.sub("", cleaned)
    return compact(cleaned)


def to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def extract_reference(column_name: str) -> Optional[str]:
    """
    Extract the referenced noun from a foreign-key shaped column name.

    Returns the compact reference, or None when the column has no
    <ref>_id / <ref>_key / <ref>Id shape. Bare ``id`` returns None.

    Examples:
        >>> extract_reference("customer_id")
        'customer'
        >>> extract_reference("orderItemId")
        'orderitem'
        >>> extract_reference("status") is None
        True
    """
    if not column_name:
        return None
    lower = column_name.lower()

    for suffix in FK_SUFFIXES:
        if lower.endswith(suffix) and len(lower) > len(suffix):
            ref = compact(lower[: -len(suffix)])
            return ref or None

    match = _CAMEL_ID.match(column_name)
    if match:
        ref = compact(to_snake(match.group(1)))
        return ref or None

    return None


def is_bare_id(column_name: str) -> bool:
    return (column_name or "").lower() == BARE_ID


def looks_like_foreign_key(column_name: str) -> bool:
    """<noun>_id shaped (or any suffix shape), or bare id."""
    return is_bare_id(column_name) or extract_reference(column_name) is not None


def is_shared_identifier(column_name: str) -> bool:
    """
    Columns that can link two tables carrying the same name: reference shaped
    (<ref>_id) or a business identifier such as uuid or code. Bare id never does.
    """
    return extract_reference(column_name) is not None or compact(column_name) in SHARED_IDENTIFIERS


def base_type(data_type: str) -> str:
    """Normalize a declared type: lower-case, no length/precision arguments."""
    return _TYPE_ARGS.sub("", (data_type or "").lower()).strip()


def types_compatible(type1: str, type2: str) -> bool:
    """Check if two declared data types are compatible for an equality JOIN."""
    if not type1 or not type2:
        return False

    t1 = base_type(type1)
    t2 = base_type(type2)
    if t1 == t2:
        return True

    for family in TYPE_FAMILIES:
        t1_in_family = any(member in t1 for member in family)
        t2_in_family = any(member in t2 for member in family)
        if t1_in_family and t2_in_family:
            return True

    return False
