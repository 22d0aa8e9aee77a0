"""Tests for region parsing and the ZCTA/district table."""

import pytest

from district_twins.exceptions import ResolutionError
from district_twins.geo_tables import (
    UNKNOWN_FIPS,
    DistrictMapper,
    looks_like_zip,
    parse_region_id,
    state_fips,
)


class TestStateFips:
    """Tests for state FIPS lookup."""

    def test_known_states(self):
        assert state_fips("CA") == "06"
        assert state_fips("ny") == "36"
        assert state_fips("DC") == "11"

    def test_unknown_state(self):
        assert state_fips("ZZ") == UNKNOWN_FIPS


class TestParseRegionId:
    """Tests for parse_region_id."""

    def test_zip(self):
        query = parse_region_id("94110")
        assert query.is_zip
        assert query.geography_params() == {"for": "zip code tabulation area:94110"}

    def test_district(self):
        query = parse_region_id("CA-12")
        assert not query.is_zip
        assert query.state == "CA"
        assert query.geography_params() == {
            "for": "congressional district:12",
            "in": "state:06",
        }

    def test_district_leading_zero_dropped(self):
        query = parse_region_id("NY-05")
        assert query.district_number == "5"
        assert query.fips == "36"

    def test_unknown_state_raises(self):
        with pytest.raises(ResolutionError) as exc_info:
            parse_region_id("ZZ-1")
        assert exc_info.value.region_id == "ZZ-1"

    @pytest.mark.parametrize("region_id", ["", "9411", "CA12", "California-12", "CA-123"])
    def test_malformed_raises(self, region_id):
        with pytest.raises(ResolutionError):
            parse_region_id(region_id)

    def test_looks_like_zip(self):
        assert looks_like_zip("02139")
        assert not looks_like_zip("CA-12")


class TestDistrictMapper:
    """Tests for DistrictMapper against the bundled table."""

    @pytest.fixture
    def mapper(self):
        return DistrictMapper()

    def test_bundled_table_loads(self, mapper):
        assert mapper.row_count > 0

    def test_zip_codes_for_district(self, mapper):
        zips = mapper.get_zip_codes_for_district("CA-12")
        assert len(zips) == 14
        assert "94612" in zips
        assert zips == sorted(zips)

    def test_zip_codes_for_unknown_district(self, mapper):
        assert mapper.get_zip_codes_for_district("CA-99") == []
        assert mapper.get_zip_codes_for_district("garbage") == []

    def test_districts_for_state(self, mapper):
        assert mapper.get_districts_for_state("ca") == ["CA-11", "CA-12"]

    def test_all_states_and_districts(self, mapper):
        table = mapper.get_all_states_and_districts()
        assert set(table) == {"CA", "DC", "NY", "TX"}
        assert table["NY"] == ["NY-10", "NY-12"]

    def test_district_for_zip(self, mapper):
        assert mapper.get_district_for_zip("78701") == "TX-37"
        assert mapper.get_district_for_zip("99999") is None

    def test_is_valid_district(self, mapper):
        assert mapper.is_valid_district("DC-98")
        assert mapper.is_valid_district("CA-11")
        assert not mapper.is_valid_district("TX-1")

    def test_cache_and_clear(self, mapper):
        mapper.get_zip_codes_for_district("CA-11")
        assert mapper.cache_stats()["size"] == 1
        mapper.clear_cache()
        assert mapper.cache_stats()["size"] == 0

    def test_missing_file_yields_empty_answers(self, tmp_path):
        mapper = DistrictMapper(tmp_path / "missing.csv")
        assert mapper.row_count == 0
        assert mapper.get_zip_codes_for_district("CA-12") == []
        assert mapper.get_all_states() == []

    def test_custom_table_pads_zips(self, tmp_path):
        path = tmp_path / "zccd.csv"
        path.write_text("state_fips,state_abbr,zcta,cd\n25,MA,2139,07\n25,MA,2138,7\n")
        mapper = DistrictMapper(path)
        assert mapper.get_zip_codes_for_district("MA-7") == ["02138", "02139"]
