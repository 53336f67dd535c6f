"""
Short prefixed ID helpers for graph entities.

Format: {prefix}_{base36}
- bl_xxxxxxxxxxxxx  - backlink (derived from source/target page ids)

Page and database ids come from the source system and are used as-is.
Backlink ids are derived, not random: the same (source, target) pair always
maps to the same id, so graph edges keep their identity across rebuilds.
"""
import hashlib
import re
from typing import Optional

# Base36 alphabet (lowercase letters + digits)
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
BASE = len(ALPHABET)  # 36

PREFIXES = {
    'backlink': 'bl',
}

PREFIX_TO_TYPE = {v: k for k, v in PREFIXES.items()}

# 13 base36 digits hold a full 64-bit digest prefix
ID_LENGTH = 13

ID_PATTERN = re.compile(rf'^(bl)_[0-9a-z]{{{ID_LENGTH}}}$')


def _to_base36(value: int, length: int = ID_LENGTH) -> str:
    """Encode an integer as fixed-width base36 (high digits dropped past length)"""
    result = []
    for _ in range(length):
        value, remainder = divmod(value, BASE)
        result.append(ALPHABET[remainder])
    return ''.join(reversed(result))


def derive_id(entity_type: str, *parts: str) -> str:
    """
    Derive a stable short ID from one or more identifying strings.

    Args:
        entity_type: One of PREFIXES keys
        *parts: Identifying strings (order matters)

    Returns:
        Short ID like 'bl_0x5b8r2yjk3qa'

    Raises:
        ValueError: If entity_type is invalid
    """
    if entity_type not in PREFIXES:
        raise ValueError(f"Invalid entity type: {entity_type}. "
                        f"Must be one of: {list(PREFIXES.keys())}")

    digest = hashlib.sha256('\x1f'.join(parts).encode('utf-8')).digest()
    return f"{PREFIXES[entity_type]}_{_to_base36(int.from_bytes(digest[:8], 'big'))}"


def generate_backlink_id(source_page_id: str, target_page_id: str) -> str:
    """Backlink id for a (source, target) page pair"""
    return derive_id('backlink', source_page_id, target_page_id)


def validate_id(id_str: str) -> bool:
    """
    Check if a string is a valid short ID.

    Args:
        id_str: String to validate

    Returns:
        True if valid, False otherwise
    """
    if not id_str or not isinstance(id_str, str):
        return False
    return bool(ID_PATTERN.match(id_str))


def get_id_type(id_str: str) -> Optional[str]:
    """Extract the entity type from an ID, or None if invalid"""
    if not validate_id(id_str):
        return None
    return PREFIX_TO_TYPE.get(id_str.split('_', 1)[0])
