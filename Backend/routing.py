"""
Size-based routing of PDF uploads to storage accounts.

Each tier is an (exclusive upper bound, provider) pair, scanned in order.
A file exactly on a bound belongs to the next tier up; anything at or above
the last bound is rejected.
"""
from typing import List, Optional, Tuple

from errors import EmptyFileError, OversizedFileError
from models import ProviderTag

MB = 1024 * 1024
SMALL_FILE_THRESHOLD = 10 * MB
MAX_FILE_SIZE = 25 * MB

SIZE_TIERS: List[Tuple[int, ProviderTag]] = [
    (SMALL_FILE_THRESHOLD, ProviderTag.IMAGEKIT_SMALL),
    (MAX_FILE_SIZE, ProviderTag.IMAGEKIT_LARGE),
]

TIER_DESCRIPTIONS = {
    ProviderTag.IMAGEKIT_SMALL: "ImageKit Small Account (< 10MB)",
    ProviderTag.IMAGEKIT_LARGE: "ImageKit Main Account (10-25MB)",
}


def format_size(size: int) -> str:
    return f"{size / MB:.2f}MB"


def classify_size(size: int) -> ProviderTag:
    if size <= 0:
        raise EmptyFileError("File appears to be empty")
    for upper_bound, provider in SIZE_TIERS:
        if size < upper_bound:
            return provider
    raise OversizedFileError(
        f"File size ({format_size(size)}) exceeds maximum limit of {MAX_FILE_SIZE // MB}MB"
    )


def provider_info(size: int) -> Tuple[Optional[ProviderTag], str]:
    """Which account would take a file of this size, for display before uploading."""
    try:
        provider = classify_size(size)
    except EmptyFileError:
        return None, "File is empty"
    except OversizedFileError:
        return None, f"File too large (>= {MAX_FILE_SIZE // MB}MB)"
    return provider, TIER_DESCRIPTIONS[provider]
