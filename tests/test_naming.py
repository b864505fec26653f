"""Tests for stat name sanitization and message formatting."""

from __future__ import annotations

import pytest

from shardstatsd.naming import sanitize_name, stat_to_text
from shardstatsd.wire import Measurement, MetricType, format_message, format_number


class Outer:
    class Inner:
        pass


class TestSanitizeName:
    """Tests for sanitize_name."""

    def test_reserved_characters(self):
        assert sanitize_name("ray@hostname.blah|blah.blah:blah") == (
            "ray_hostname.blah_blah.blah_blah"
        )

    def test_scope_separator(self):
        assert sanitize_name("A::B::C") == "A.B.C"

    def test_scope_separator_before_reserved(self):
        assert sanitize_name("a:::b") == "a._b"

    def test_plain_name_unchanged(self):
        assert sanitize_name("api.requests.2xx") == "api.requests.2xx"

    def test_class(self):
        assert sanitize_name(Outer.Inner) == f"{__name__}.Outer.Inner"

    def test_non_string(self):
        assert sanitize_name(42) == "42"
        assert stat_to_text(3.5) == "3.5"


class TestFormatMessage:
    """Tests for the wire format."""

    @pytest.mark.parametrize(
        "metric_type,tag",
        [
            (MetricType.COUNTER, "c"),
            (MetricType.TIMING, "ms"),
            (MetricType.GAUGE, "g"),
            (MetricType.HISTOGRAM, "h"),
        ],
    )
    def test_type_tags(self, metric_type, tag):
        assert format_message("foo", 1, metric_type) == f"foo:1|{tag}".encode()

    def test_sample_rate(self):
        assert format_message("foo", 1, MetricType.COUNTER, 0.25) == b"foo:1|c|@0.25"

    def test_namespace(self):
        assert format_message("foo", 1, MetricType.COUNTER, namespace="svc") == b"svc.foo:1|c"

    def test_empty_namespace_is_ignored(self):
        assert format_message("foo", 1, MetricType.COUNTER, namespace="") == b"foo:1|c"

    def test_numbers(self):
        assert format_number(1) == "1"
        assert format_number(-1) == "-1"
        assert format_number(0.1) == "0.1"
        assert format_number(250.0) == "250.0"
        assert format_number(True) == "1"

    def test_measurement(self):
        measurement = Measurement("a::b", 3, MetricType.HISTOGRAM, 0.5)
        assert measurement.name == "a.b"
        assert measurement.to_wire("svc") == b"svc.a.b:3|h|@0.5"

    def test_gauge_not_sampled(self):
        assert MetricType.GAUGE.supports_sampling is False
        assert MetricType.COUNTER.supports_sampling is True
