"""Shared fixtures: a small on-disk project with every static resource the pipeline reads."""

import json
from pathlib import Path

import pytest

from ops.config_loader import Config
from processing.data_service import DataService

METROS_CSV = """metro,state_id,lat,lng
"Anchorage, AK Metro Area",AK,61.2,-149.9
"Boise City, ID Metro Area",ID,43.6,-116.2
"Springfield, IL Metro Area",IL,39.8,-89.6
"Springfield, MO Metro Area",MO,37.2,-93.3
"""

MSA_CSV_2015 = """area_name,sdg,sdg_lq,CBSA
"Anchorage, AK",SDG-01,1.23,11260
"Anchorage, AK",SDG-02,0.5,11260
Boise City,SDG-01,2.5,
Springfield,SDG-01,0.9,
"""

MSA_JSON_2015 = [
    {"area_name": "Anchorage, AK", "sdg": "SDG-01", "sdg_lq": 1.23},
    {"area_name": "Anchorage, AK", "sdg": "SDG-02", "sdg_lq": 0.5},
    {"area_name": "Boise City, ID", "sdg": "SDG-01", "sdg_lq": 2.5},
]

STATE_JSON_2015 = [
    {"state_num": 2, "state_name": "Alaska", "sdg": "SDG-01", "sdg_lq": 1.1},
    {"state_num": "6", "state_name": "California", "sdg": "SDG-01", "sdg_lq": 0.7},
]

CBSA_CSV = """GEOID,NAME,lat,lng,overall,wkt
11260,"Anchorage, AK",61.2,-149.9,1.5,"POLYGON ((-150 61, -149 61, -149 62, -150 62, -150 61))"
14260,Boise City,43.6,-116.2,,"POLYGON ((-117 43, -116 43, -116 44, -117 44, -117 43))"
99999,Nowhere,,,,
"""

CROSSWALK_ROWS = [
    {"CBSA Title": "Anchorage, AK", "FIPS State Code": 2, "FIPS County Code": 20},
    {"CBSA Title": "Anchorage, AK", "FIPS State Code": 2, "FIPS County Code": 170},
    {"CBSA Title": "Boise City, ID", "FIPS State Code": 16, "FIPS County Code": 1},
]


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project root laid out like the real repository (ops/config.yaml + data/)."""
    _write(tmp_path / "ops" / "config.yaml", 'project_name: "SDG Test"\n')
    _write(tmp_path / "data" / "usmetros.csv", METROS_CSV)
    _write(tmp_path / "data" / "eung_msa" / "eung_msa_2015.csv", MSA_CSV_2015)
    _write(tmp_path / "data" / "msa_json" / "msa_2015.json", json.dumps(MSA_JSON_2015))
    _write(
        tmp_path / "data" / "msa_state_json" / "msa_state_2015.json", json.dumps(STATE_JSON_2015)
    )
    _write(tmp_path / "data" / "msaTOcounties.json", json.dumps(CROSSWALK_ROWS))
    _write(tmp_path / "data" / "msa2025_centroids.csv", CBSA_CSV)
    return tmp_path


@pytest.fixture
def config(project: Path) -> Config:
    return Config(str(project / "ops" / "config.yaml"), project_root_override=project)


@pytest.fixture
def service(config: Config) -> DataService:
    return DataService(config)
