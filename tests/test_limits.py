from types import SimpleNamespace
from unittest.mock import patch

import pytest

from nixhive.limits import EvaluationNodeLimit, ParallelismLimit

MIB = 1024 * 1024


@pytest.mark.parametrize("text", ["auto", "0", "7", "25"])
def test_parse_round_trip(text):
    assert str(EvaluationNodeLimit.parse(text)) == text


def test_parse_zero_means_no_limit():
    assert EvaluationNodeLimit.parse("0").get_limit() is None


def test_parse_manual():
    assert EvaluationNodeLimit.parse("7").get_limit() == 7


@pytest.mark.parametrize("text", ["", "-1", "abc", " 3", "1.5"])
def test_parse_rejects_invalid(text):
    with pytest.raises(ValueError, match="valid number or `auto`"):
        EvaluationNodeLimit.parse(text)


def test_default_is_heuristic():
    assert str(EvaluationNodeLimit()) == "auto"
    assert EvaluationNodeLimit() == EvaluationNodeLimit.parse("auto")


def test_heuristic_low_memory_gives_one():
    mem = SimpleNamespace(available=100 * MIB)
    with patch("psutil.virtual_memory", return_value=mem):
        assert EvaluationNodeLimit().get_limit() == 1


def test_heuristic_with_plenty_of_memory():
    mem = SimpleNamespace(available=4096 * MIB)
    with patch("psutil.virtual_memory", return_value=mem):
        assert EvaluationNodeLimit().get_limit() == 6


def test_heuristic_grows_with_memory():
    small = SimpleNamespace(available=4096 * MIB)
    large = SimpleNamespace(available=16384 * MIB)
    with patch("psutil.virtual_memory", return_value=small):
        low = EvaluationNodeLimit().get_limit()
    with patch("psutil.virtual_memory", return_value=large):
        high = EvaluationNodeLimit().get_limit()
    assert high > low >= 1


def test_heuristic_fallback_on_error():
    with patch("psutil.virtual_memory", side_effect=OSError("no meminfo")):
        assert EvaluationNodeLimit().get_limit() == 10


def test_parallelism_defaults_and_update():
    limit = ParallelismLimit()
    assert limit.evaluation_limit == 1
    assert limit.apply_limit == 10
    limit.set_apply_limit(3)
    assert limit.apply_limit == 3


@pytest.mark.asyncio
async def test_apply_semaphore_respects_limit():
    limit = ParallelismLimit()
    limit.set_apply_limit(1)
    await limit.apply.acquire()
    assert limit.apply.locked()
    limit.apply.release()
    assert not limit.apply.locked()