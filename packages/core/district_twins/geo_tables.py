"""
Geography lookups: state FIPS codes, region id parsing and the
ZCTA to congressional district mapping.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from .exceptions import ResolutionError
from .paths import default_zccd_path


logger = logging.getLogger(__name__)

UNKNOWN_FIPS = "00"

STATE_FIPS: Dict[str, str] = {
    "AL": "01", "AK": "02", "AZ": "04", "AR": "05", "CA": "06", "CO": "08", "CT": "09", "DE": "10",
    "FL": "12", "GA": "13", "HI": "15", "ID": "16", "IL": "17", "IN": "18", "IA": "19", "KS": "20",
    "KY": "21", "LA": "22", "ME": "23", "MD": "24", "MA": "25", "MI": "26", "MN": "27", "MS": "28",
    "MO": "29", "MT": "30", "NE": "31", "NV": "32", "NH": "33", "NJ": "34", "NM": "35", "NY": "36",
    "NC": "37", "ND": "38", "OH": "39", "OK": "40", "OR": "41", "PA": "42", "RI": "44", "SC": "45",
    "SD": "46", "TN": "47", "TX": "48", "UT": "49", "VT": "50", "VA": "51", "WA": "53", "WV": "54",
    "WI": "55", "WY": "56", "DC": "11",
}

ZIP_PATTERN = re.compile(r"^\d{5}$")
DISTRICT_PATTERN = re.compile(r"^([A-Z]{2})-(\d{1,2})$")


def state_fips(state_abbr: str) -> str:
    """Return the two-digit FIPS code for a state, or "00" if unknown."""
    return STATE_FIPS.get(state_abbr.upper(), UNKNOWN_FIPS)


@dataclass(frozen=True)
class RegionQuery:
    """A region id resolved into the geography the Census API understands."""
    region_id: str
    kind: str                          # "zip" or "district"
    zip_code: Optional[str] = None
    state: Optional[str] = None
    district_number: Optional[str] = None
    fips: Optional[str] = None

    @property
    def is_zip(self) -> bool:
        return self.kind == "zip"

    def geography_params(self) -> Dict[str, str]:
        """Return the ``for``/``in`` query parameters for this geography."""
        if self.is_zip:
            return {"for": f"zip code tabulation area:{self.zip_code}"}
        return {
            "for": f"congressional district:{self.district_number}",
            "in": f"state:{self.fips}",
        }


def looks_like_zip(region_id: str) -> bool:
    return bool(ZIP_PATTERN.match(region_id.strip()))


def parse_region_id(region_id: str) -> RegionQuery:
    """
    Resolve a ZIP code or ``XX-N`` district string.

    Args:
        region_id: Five-digit ZIP, or a state abbreviation and district
            number such as "CA-12" (leading zeros in the number are dropped)

    Returns:
        RegionQuery ready for the Census request

    Raises:
        ResolutionError: If the id is malformed or the state is unknown
    """
    text = (region_id or "").strip()

    if ZIP_PATTERN.match(text):
        return RegionQuery(region_id=text, kind="zip", zip_code=text)

    match = DISTRICT_PATTERN.match(text)
    if not match:
        raise ResolutionError(f"Unrecognized region id: {region_id!r}", region_id=region_id)

    state, number = match.group(1), match.group(2)
    fips = state_fips(state)
    if fips == UNKNOWN_FIPS:
        raise ResolutionError(f"Unknown state abbreviation '{state}'", region_id=region_id)

    return RegionQuery(
        region_id=text,
        kind="district",
        state=state,
        district_number=number.lstrip("0") or "0",
        fips=fips,
    )


class DistrictMapper:
    """
    Answers ZIP <-> congressional district questions from a ZCTA table.

    The table is a CSV with ``state_fips, state_abbr, zcta, cd`` columns.
    A missing or unreadable file is logged and yields empty answers.
    """

    COLUMNS = ["state_fips", "state_abbr", "zcta", "cd"]

    def __init__(self, csv_path: Optional[Union[str, Path]] = None):
        self.csv_path = Path(csv_path) if csv_path else default_zccd_path()
        self._cache: Dict[str, List[str]] = {}
        self._table = self._load_table()

    def _load_table(self) -> pd.DataFrame:
        try:
            table = pd.read_csv(self.csv_path, dtype=str)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.warning(f"Failed to load district table {self.csv_path}: {e}")
            return pd.DataFrame(columns=self.COLUMNS)

        missing = [c for c in self.COLUMNS if c not in table.columns]
        if missing:
            logger.warning(f"District table {self.csv_path} is missing columns: {', '.join(missing)}")
            return pd.DataFrame(columns=self.COLUMNS)

        table = table[self.COLUMNS].dropna()
        table["state_abbr"] = table["state_abbr"].str.strip().str.upper()
        table["zcta"] = table["zcta"].str.strip().str.zfill(5)
        table["cd"] = table["cd"].str.strip().str.lstrip("0").replace("", "0")
        logger.info(f"Loaded {len(table)} ZCTA/district rows from {self.csv_path}")
        return table

    @property
    def row_count(self) -> int:
        return len(self._table)

    def get_zip_codes_for_district(self, district: str) -> List[str]:
        """Return the ZCTAs that fall (at least partly) in a district such as "CA-12"."""
        key = f"zips:{district}"
        if key in self._cache:
            return list(self._cache[key])

        match = DISTRICT_PATTERN.match(district.strip())
        if not match:
            return []
        state, number = match.group(1), match.group(2).lstrip("0") or "0"

        rows = self._table[(self._table["state_abbr"] == state) & (self._table["cd"] == number)]
        zips = sorted(set(rows["zcta"].tolist()))
        self._cache[key] = zips
        return list(zips)

    def get_districts_for_state(self, state: str) -> List[str]:
        """Return district strings for a state, ordered by district number."""
        state = state.upper()
        key = f"state:{state}"
        if key in self._cache:
            return list(self._cache[key])

        numbers = self._table.loc[self._table["state_abbr"] == state, "cd"].unique().tolist()
        districts = [f"{state}-{n}" for n in sorted(numbers, key=int)]
        self._cache[key] = districts
        return list(districts)

    def get_all_states(self) -> List[str]:
        return sorted(self._table["state_abbr"].unique().tolist())

    def get_all_states_and_districts(self) -> Dict[str, List[str]]:
        return {state: self.get_districts_for_state(state) for state in self.get_all_states()}

    def get_district_for_zip(self, zip_code: str) -> Optional[str]:
        """
        Return the district containing a ZCTA.

        A ZCTA split across districts maps to the first listed row.
        """
        key = f"zip:{zip_code}"
        if key in self._cache:
            cached = self._cache[key]
            return cached[0] if cached else None

        rows = self._table[self._table["zcta"] == zip_code.strip()]
        if rows.empty:
            self._cache[key] = []
            return None
        first = rows.iloc[0]
        district = f"{first['state_abbr']}-{first['cd']}"
        self._cache[key] = [district]
        return district

    def is_valid_district(self, district: str) -> bool:
        match = DISTRICT_PATTERN.match(district.strip())
        if not match:
            return False
        normalized = f"{match.group(1)}-{match.group(2).lstrip('0') or '0'}"
        return normalized in self.get_districts_for_state(match.group(1))

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> Dict[str, object]:
        return {"size": len(self._cache), "keys": list(self._cache.keys())}
