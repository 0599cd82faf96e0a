"""Tests for RollupOptions."""

import pytest
from pydantic import ValidationError

from presence_rollups.config import RollupOptions


def test_defaults():
    options = RollupOptions()
    assert options.arrive_rollup_leeway_ms == 60 * 1000
    assert options.depart_rollup_leeway_ms == 60 * 1000
    assert options.depart_rejoin_patience_ms == 15 * 1000
    assert options.depart_rejoin_patience_s == 15


def test_from_mapping_partial():
    options = RollupOptions.from_mapping({"depart_rejoin_patience_ms": 5000})
    assert options.depart_rejoin_patience_ms == 5000
    assert options.arrive_rollup_leeway_ms == 60 * 1000


def test_from_mapping_none():
    assert RollupOptions.from_mapping(None) == RollupOptions()


def test_unknown_key_rejected():
    with pytest.raises(ValidationError):
        RollupOptions.from_mapping({"arrive_leeway": 10})


def test_negative_duration_rejected():
    with pytest.raises(ValidationError):
        RollupOptions(depart_rejoin_patience_ms=-1)


def test_frozen():
    options = RollupOptions()
    with pytest.raises(ValidationError):
        options.arrive_rollup_leeway_ms = 1
