"""Tests for the county/state metric tables and selector options."""

from processing.metrics import (
    active_county_set,
    area_options,
    build_county_metrics,
    build_state_metrics,
    sdg_options,
    sort_sdg_keys,
)

CROSSWALK = {"Anchorage, AK": ["02020", "02170"], "Boise City, ID": ["16001"]}


def test_county_metrics_fan_out_through_crosswalk():
    records = [
        {"area_name": "Anchorage, AK", "sdg": "SDG-01", "sdg_lq": 1.2},
        {"area_name": "Anchorage, AK", "sdg": "SDG-02", "sdg_lq": "0.5"},
        {"area_name": "Boise City, ID", "sdg": "SDG-01", "sdg_lq": 2},
        {"area_name": "Unknown, ZZ", "sdg": "SDG-01", "sdg_lq": 9},
    ]
    metrics = build_county_metrics(records, CROSSWALK)

    assert metrics == {
        "02020": {"SDG-01": 1.2, "SDG-02": 0.5},
        "02170": {"SDG-01": 1.2, "SDG-02": 0.5},
        "16001": {"SDG-01": 2.0},
    }


def test_county_in_two_msas_keeps_last_record():
    crosswalk = {"A": ["01001"], "B": ["01001"]}
    records = [
        {"area_name": "A", "sdg": "SDG-01", "sdg_lq": 1},
        {"area_name": "B", "sdg": "SDG-01", "sdg_lq": 2},
    ]
    assert build_county_metrics(records, crosswalk) == {"01001": {"SDG-01": 2.0}}


def test_state_metrics_pad_state_ids():
    records = [
        {"state_num": 6, "sdg": "SDG-01", "sdg_lq": 0.7},
        {"state_num": "2", "sdg": "SDG-01", "sdg_lq": "1.1"},
        {"state_num": 36.0, "sdg": "SDG-02", "sdg_lq": "x"},
        {"state_num": None, "sdg": "SDG-01", "sdg_lq": 5},
        {"state_num": "  ", "sdg": "SDG-01", "sdg_lq": 5},
    ]
    metrics = build_state_metrics(records)

    assert set(metrics) == {"06", "02", "36"}
    assert metrics["06"] == {"SDG-01": 0.7}
    assert metrics["02"] == {"SDG-01": 1.1}
    assert metrics["36"] == {"SDG-02": None}


def test_sort_sdg_keys_numeric():
    assert sort_sdg_keys(["SDG-10", "SDG-2", "overall", "SDG-01"]) == [
        "SDG-01",
        "SDG-2",
        "SDG-10",
        "overall",
    ]


def test_selector_options():
    records = [
        {"area_name": "Reno, NV", "sdg": "SDG-11"},
        {"area_name": "Boise City, ID", "sdg": "SDG-3"},
        {"area_name": "Reno, NV", "sdg": "SDG-3"},
        {"sdg": None},
    ]
    assert sdg_options(records) == ["SDG-3", "SDG-11"]
    assert area_options(records) == ["Boise City, ID", "Reno, NV"]


def test_active_county_set():
    assert active_county_set(CROSSWALK, "Anchorage, AK") == frozenset({"02020", "02170"})
    assert active_county_set(CROSSWALK, None) == frozenset()


def test_null_and_non_finite_values_are_stored_as_none():
    records = [
        {"area_name": "Boise City, ID", "sdg": "SDG-01", "sdg_lq": None},
        {"area_name": "Boise City, ID", "sdg": "SDG-02", "sdg_lq": float("inf")},
        {"area_name": "Boise City, ID", "sdg": "SDG-03", "sdg_lq": "n/a"},
    ]
    assert build_county_metrics(records, CROSSWALK) == {
        "16001": {"SDG-01": None, "SDG-02": None, "SDG-03": None}
    }
    assert build_state_metrics([{"state_num": 6, "sdg": "SDG-01", "sdg_lq": float("nan")}]) == {
        "06": {"SDG-01": None}
    }
