"""
Sender identity normalization.

Chat transports deliver numbers in several shapes ("+55 (11) 99999-9999",
"5511999999999@s.whatsapp.net", with or without the mobile ninth digit).
Owners are registered under one of them, so resolution tries each variant.
"""

import logging
import re
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from chat_scheduler.core.scheduling.stores import OwnerStore

logger = logging.getLogger(__name__)

_NOISE = re.compile(r"[\s\-()+]")

COUNTRY_CODE = "55"


def clean_identity(identity: str) -> str:
    """Drop the transport suffix and formatting characters."""
    return _NOISE.sub("", identity.split("@", 1)[0])


def identity_variants(identity: str) -> list[str]:
    """
    Candidate forms of an identity, most literal first.

    Brazilian mobile numbers gained a leading 9 after the area code; a
    12-digit number gets one inserted, a 13-digit one has it removed.
    """
    cleaned = clean_identity(identity)
    variants = [cleaned]

    if cleaned.startswith(COUNTRY_CODE) and cleaned.isdigit():
        if len(cleaned) == 12:
            variants.append(f"{cleaned[:4]}9{cleaned[4:]}")
        elif len(cleaned) == 13 and cleaned[4] == "9":
            variants.append(f"{cleaned[:4]}{cleaned[5:]}")

    return variants


async def normalize_and_resolve(identity: str, owners: "OwnerStore") -> Optional[str]:
    """
    Resolve a sender identity to an owner id.

    Args:
        identity: Raw sender identity from the transport
        owners: Store to look identities up in

    Returns:
        Owner id, or None if no variant is registered
    """
    for variant in identity_variants(identity):
        owner_id = await owners.find_owner_by_identity(variant)
        if owner_id is not None:
            return owner_id

    logger.info(f"No owner registered for identity {clean_identity(identity)}")
    return None
