import pytest

from errors import EmptyFileError, OversizedFileError
from models import ProviderTag
from routing import MAX_FILE_SIZE, MB, SMALL_FILE_THRESHOLD, classify_size, provider_info


@pytest.mark.parametrize("size", [1, 512 * 1024, SMALL_FILE_THRESHOLD - 1])
def test_sizes_below_first_threshold_use_small_account(size):
    assert classify_size(size) is ProviderTag.IMAGEKIT_SMALL


@pytest.mark.parametrize("size", [SMALL_FILE_THRESHOLD, 17 * MB, MAX_FILE_SIZE - 1])
def test_sizes_between_thresholds_use_main_account(size):
    assert classify_size(size) is ProviderTag.IMAGEKIT_LARGE


@pytest.mark.parametrize("size", [MAX_FILE_SIZE, MAX_FILE_SIZE + 1, 100 * MB])
def test_sizes_at_or_above_ceiling_are_rejected(size):
    with pytest.raises(OversizedFileError) as exc:
        classify_size(size)
    assert "25MB" in str(exc.value)


@pytest.mark.parametrize("size", [0, -1])
def test_empty_file_is_rejected(size):
    with pytest.raises(EmptyFileError):
        classify_size(size)


def test_provider_info_describes_tier():
    assert provider_info(2 * MB) == (ProviderTag.IMAGEKIT_SMALL, "ImageKit Small Account (< 10MB)")
    assert provider_info(12 * MB) == (ProviderTag.IMAGEKIT_LARGE, "ImageKit Main Account (10-25MB)")


def test_provider_info_without_provider_for_unroutable_sizes():
    provider, description = provider_info(MAX_FILE_SIZE)
    assert provider is None
    assert "too large" in description

    provider, _ = provider_info(0)
    assert provider is None
