from dataclasses import replace
from datetime import timedelta

import pytest


def test_duration_defaults_to_stop_minus_start(make_sample):
    sample = make_sample(duration_ms=250)
    assert sample.duration == timedelta(milliseconds=250)
    assert sample.duration_ms == pytest.approx(250)


def test_valid_sample(make_sample):
    assert make_sample().is_valid()


@pytest.mark.parametrize("path", ["", "/#1503500717/", "/#/"])
def test_uncorrelatable_activity_paths_are_invalid(make_sample, path):
    sample = replace(make_sample(), start_activity_id_path=path)
    assert not sample.is_valid()


def test_start_path_must_extend_stop_path(make_sample):
    sample = replace(make_sample(path="/1/2/"), stop_activity_id_path="/9/")
    assert not sample.is_valid()

    nested = replace(make_sample(path="/1/2/3/"), stop_activity_id_path="/1/2/")
    assert nested.is_valid()


def test_non_positive_timing_is_invalid(make_sample):
    sample = make_sample()
    backwards = replace(sample, stop_time_utc=sample.start_time_utc, duration=None)
    assert not backwards.is_valid()


def test_missing_request_id_is_invalid(make_sample):
    assert not replace(make_sample(), request_id="").is_valid()


def test_correlation_key_falls_back_to_request_id(make_sample):
    sample = replace(make_sample(operation_id="op"), operation_id="")
    assert sample.correlation_key == "req-op"


def test_dict_round_trip(make_sample):
    from autoprofiler.contracts.samples import SampleActivity

    sample = make_sample(duration_ms=42)
    restored = SampleActivity.from_dict(sample.to_dict())
    assert restored == sample
