"""Tests for Sampler."""

from __future__ import annotations

import math
from unittest.mock import MagicMock

import pytest

from shardstatsd.sampling import Sampler


RATES = [0.001, 0.1, 0.25, 0.5, 0.75, 0.999]


class TestSampler:
    """Tests for the sampling decision."""

    @pytest.mark.parametrize("rate", RATES + [1])
    def test_draw_equal_to_rate_runs_body(self, rate):
        body = MagicMock(return_value="ran")
        assert Sampler(lambda: rate).sampled(rate, body) == "ran"
        body.assert_called_once_with()

    @pytest.mark.parametrize("rate", RATES)
    def test_draw_above_rate_skips_body(self, rate):
        body = MagicMock()
        draw = math.nextafter(rate, 1.0)
        assert Sampler(lambda: draw).sampled(rate, body) is None
        body.assert_not_called()

    @pytest.mark.parametrize("rate", [1, 1.0, 2])
    def test_full_rate_never_draws(self, rate):
        source = MagicMock(side_effect=AssertionError("should not draw"))
        assert Sampler(source).should_sample(rate) is True
        source.assert_not_called()

    def test_draws_once_per_decision(self):
        source = MagicMock(return_value=0.1)
        sampler = Sampler(source)
        sampler.should_sample(0.5)
        sampler.should_sample(0.5)
        assert source.call_count == 2

    def test_default_source_is_uniform(self):
        sampler = Sampler()
        hits = sum(sampler.should_sample(0.5) for _ in range(2000))
        assert 700 < hits < 1300
