import pytest

from grooming.types import GroomResult, RemovedRun, TrimSummary


def _removed(number, size=100):
    return RemovedRun(id=None, directory_number=number, directory_name=f"spbr{number:04d}", path=None, size_bytes=size)


def test_groom_result_combines_both_passes():
    result = GroomResult(
        count=TrimSummary(removed=[_removed(1), _removed(2)]),
        size=TrimSummary(removed=[_removed(3, size=None)]),
    )

    assert GroomResult().removed_numbers == []
    assert result.removed_numbers == [1, 2, 3]
    assert result.count.freed_bytes == 200
    assert result.size.freed_bytes is None


def test_groom_result_rejects_unknown_attributes():
    result = GroomResult()

    with pytest.raises(AttributeError):
        result.extra = 1
