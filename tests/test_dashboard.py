"""Tests for the selector-driven dashboard derivations and their memoization."""

import json

import pytest

from processing.dashboard import Dashboard, IdentityMemo


@pytest.fixture
def dashboard(service) -> Dashboard:
    return Dashboard(service)


def test_identity_memo_reuses_result_for_same_inputs():
    memo = IdentityMemo()
    rows = ({"a": 1},)
    calls = []

    def compute():
        calls.append(1)
        return object()

    first = memo.get("x", (rows,), ("SDG-01",), compute)
    assert memo.get("x", (rows,), ("SDG-01",), compute) is first
    assert memo.get("x", (rows,), ("SDG-02",), compute) is not first
    assert memo.get("x", (tuple(rows),), ("SDG-01",), compute) is first
    assert memo.get("x", (({"a": 1},),), ("SDG-01",), compute) is not first
    assert len(calls) == 3

    memo.clear()
    assert memo.get("x", (rows,), ("SDG-01",), compute) is not first


def test_msa_points_joins_year_data(dashboard):
    result = dashboard.msa_points(2015, "SDG-01")

    assert [p.area_name for p in result.points] == ["Anchorage, AK", "Boise City"]
    assert result.fallback_hits == 1
    assert result.unmatched == ['"springfield" <- "Springfield"']


def test_msa_points_memoized_on_selector(dashboard):
    first = dashboard.msa_points(2015, "SDG-01")
    assert dashboard.msa_points(2015, "sdg1") is first
    assert dashboard.msa_points(2015, "SDG-02") is not first


def test_msa_values(dashboard):
    lookup = dashboard.msa_values(2015, "overall")

    assert lookup.value_by_name["anchorage, ak"] == pytest.approx(0.865)
    assert lookup.value_by_name["boise city"] == 2.5
    assert lookup.value_by_code == {"11260": pytest.approx(0.865)}
    assert dashboard.msa_values(2015, "all") is lookup


def test_missing_year_gives_empty_structures(dashboard):
    assert dashboard.msa_points(1990, "SDG-01").points == []
    assert dashboard.msa_values(1990, "SDG-01").total == 0
    assert dashboard.dataset("msa_csv", 1990).error is not None


def test_county_and_state_metrics(dashboard):
    assert dashboard.county_metrics(2015) == {
        "02020": {"SDG-01": 1.23, "SDG-02": 0.5},
        "02170": {"SDG-01": 1.23, "SDG-02": 0.5},
        "16001": {"SDG-01": 2.5},
    }
    assert dashboard.state_metrics(2015) == {"02": {"SDG-01": 1.1}, "06": {"SDG-01": 0.7}}
    assert dashboard.county_metrics(2015) is dashboard.county_metrics(2015)


def test_options_and_default_selection(dashboard):
    assert dashboard.sdg_options(2015) == ["SDG-01", "SDG-02"]
    assert dashboard.msa_options(2015) == ["Anchorage, AK", "Boise City, ID"]
    assert dashboard.default_selection(2015) == ("SDG-01", "Anchorage, AK", "SDG-01")
    assert dashboard.default_selection(1990) == (None, None, None)


def test_default_selection_resets_state_panel_from_state_records(service, project):
    state_rows = [{"state_num": 6, "sdg": "SDG-07", "sdg_lq": 1.0}]
    (project / "data" / "msa_state_json" / "msa_state_2016.json").write_text(
        json.dumps(state_rows), encoding="utf-8"
    )
    selection = Dashboard(service).default_selection(2016)

    assert selection.sdg is None
    assert selection.area_name is None
    assert selection.state_sdg == "SDG-07"


def test_active_counties(dashboard):
    assert dashboard.active_counties("Anchorage, AK") == frozenset({"02020", "02170"})
    assert dashboard.active_counties("Nowhere") == frozenset()


def test_injected_crosswalk_is_used(service):
    dashboard = Dashboard(service, crosswalk={"Boise City, ID": ["16027"]})
    assert dashboard.county_metrics(2015) == {"16027": {"SDG-01": 2.5}}


def test_preload_loads_dataset_and_metros_once(dashboard):
    dataset, metros = dashboard.preload("msa_csv", 2015)

    assert len(dataset.rows) == 4
    assert len(metros.rows) == 4
    assert dashboard.dataset("msa_csv", 2015) is dataset
    assert dashboard.metros() is metros


def test_cbsa_centroids_and_values(dashboard):
    centroids = dashboard.cbsa_centroids()

    assert [(c.geoid, c.name, c.value) for c in centroids] == [
        ("11260", "Anchorage, AK", 1.5),
        ("14260", "Boise City", None),
    ]
    assert dashboard.cbsa_values() == {"11260": 1.5, "14260": None}
    assert dashboard.cbsa_centroids() is centroids


def test_cbsa_polygons_resolve_values(dashboard):
    layer = dashboard.cbsa_polygons(2015, "SDG-01")

    assert list(layer["GEOID"]) == ["11260", "14260"]
    # Boise City has no own value or code value; it resolves by name.
    assert list(layer["value"]) == [1.5, 2.5]
    assert dashboard.cbsa_polygons(2015, "sdg1") is layer
    assert dashboard.cbsa_polygons(2015, "SDG-02") is not layer
