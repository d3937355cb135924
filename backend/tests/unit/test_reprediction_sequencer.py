"""Reprediction sequencing and write-mode validation."""

from __future__ import annotations

import pytest

from core.errors import InvalidRequestError
from domain.predictions import NO_REPREDICTION
from pipeline.reprediction import RepredictionKind, next_action, validate_write_mode


def test_no_prediction_creates_first_at_index_zero():
    action = next_action(NO_REPREDICTION, 2)
    assert action.kind is RepredictionKind.CREATE_FIRST
    assert action.index == 0
    assert action.should_write


def test_first_prediction_is_created_even_with_zero_limit():
    assert next_action(NO_REPREDICTION, 0).kind is RepredictionKind.CREATE_FIRST


def test_reprediction_under_limit():
    action = next_action(0, 2)
    assert action.kind is RepredictionKind.CREATE_REPREDICTION
    assert action.index == 1


def test_reprediction_reaching_limit_exactly_is_allowed():
    action = next_action(1, 2)
    assert action.kind is RepredictionKind.CREATE_REPREDICTION
    assert action.index == 2


def test_at_limit_skips_with_current_index():
    action = next_action(2, 2)
    assert action.kind is RepredictionKind.SKIP_AT_LIMIT
    assert action.index == 2
    assert not action.should_write
    assert "2/2" in action.describe()


def test_zero_limit_allows_no_repredictions():
    assert next_action(0, 0).kind is RepredictionKind.SKIP_AT_LIMIT


def test_unlimited_always_increments():
    assert next_action(41, None).index == 42


@pytest.mark.parametrize("limit", [0, 1, 3])
def test_written_index_never_exceeds_limit(limit):
    current = NO_REPREDICTION
    written = []
    for _ in range(limit + 5):
        action = next_action(current, limit)
        if not action.should_write:
            break
        written.append(action.index)
        current = action.index
    assert written == list(range(limit + 1))


def test_next_action_is_pure():
    assert next_action(3, 5) == next_action(3, 5)


def test_negative_limit_is_rejected():
    with pytest.raises(InvalidRequestError):
        next_action(0, -1)


def test_write_mode_override_alone_is_fine():
    assert validate_write_mode(override=True, repredict=False) is False


def test_write_mode_max_repredictions_implies_repredict():
    assert validate_write_mode(override=False, repredict=False, max_repredictions=1) is True


def test_write_mode_rejects_override_with_repredict():
    with pytest.raises(InvalidRequestError):
        validate_write_mode(override=True, repredict=True)


def test_write_mode_rejects_override_with_max_repredictions():
    with pytest.raises(InvalidRequestError):
        validate_write_mode(override=True, repredict=False, max_repredictions=0)


def test_write_mode_rejects_negative_max():
    with pytest.raises(InvalidRequestError):
        validate_write_mode(override=False, repredict=True, max_repredictions=-1)
