"""CSV import/export for the batch job."""
import os
from dataclasses import asdict
from enum import Enum
from typing import Iterable, List, Optional

import pandas as pd
from loguru import logger

from gymmatch.errors import ValidationError
from gymmatch.models import MasterGym, Org, PendingMatch, SourceGym, Tournament

# Accepted spellings per field, first match wins
GYM_COLUMNS = {
    "external_id": ["external_id", "externalId", "id"],
    "name": ["name", "Name"],
    "city": ["city", "City"],
    "state": ["state", "State"],
    "country": ["country", "Country"],
    "country_code": ["country_code", "countryCode"],
    "address": ["address", "Address"],
    "website": ["website", "Website"],
    "responsible": ["responsible", "Responsible"],
}

TOURNAMENT_COLUMNS = {
    "org": ["org", "Org"],
    "external_id": ["external_id", "externalId", "id"],
    "name": ["name", "Name"],
    "city": ["city", "City"],
    "venue": ["venue", "Venue", "local", "place"],
    "country": ["country", "Country"],
    "start_date": ["start_date", "startDate"],
    "end_date": ["end_date", "endDate"],
}


def _safe_get(row: pd.Series, candidates: List[str]) -> Optional[str]:
    """First non-empty value among the candidate columns, as a stripped string."""
    for col in candidates:
        if col not in row.index:
            continue
        val = row[col]
        if pd.isna(val):
            continue
        text = str(val).strip()
        if text:
            return text
    return None


def load_source_gyms_from_csv(file_path: str, org: Org, nrows: int = None) -> List[SourceGym]:
    """
    Load one federation's gym export and convert rows to SourceGym objects.
    Malformed rows (no id or no name) are logged and skipped.
    """
    df = pd.read_csv(file_path, nrows=nrows, dtype=str)
    gyms = []
    for idx, row in df.iterrows():
        fields = {field: _safe_get(row, cols) for field, cols in GYM_COLUMNS.items()}
        gym = SourceGym(org=Org(org), **fields)
        try:
            gym.validate()
        except ValidationError as e:
            logger.warning(f"{file_path} row {idx}: {e}")
            continue
        gyms.append(gym)
    logger.info(f"Loaded {len(gyms)} {Org(org).value} gyms from {file_path}")
    return gyms


def load_tournaments_from_csv(file_path: str, nrows: int = None) -> List[Tournament]:
    df = pd.read_csv(file_path, nrows=nrows, dtype=str)
    tournaments = []
    for idx, row in df.iterrows():
        fields = {field: _safe_get(row, cols) for field, cols in TOURNAMENT_COLUMNS.items()}
        if not fields["org"] or not fields["external_id"] or not fields["city"]:
            logger.warning(f"{file_path} row {idx}: missing org, id or city, skipped")
            continue
        try:
            fields["org"] = Org(fields["org"].upper())
        except ValueError:
            logger.warning(f"{file_path} row {idx}: unknown org {fields['org']!r}, skipped")
            continue
        fields["name"] = fields["name"] or ""
        tournaments.append(Tournament(**fields))
    logger.info(f"Loaded {len(tournaments)} tournaments from {file_path}")
    return tournaments


def _to_row(record) -> dict:
    row = {}
    for key, value in asdict(record).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, dict):
            # flatten nested dataclasses such as MatchSignals
            for sub_key, sub_value in value.items():
                row[f"{key}_{sub_key}"] = sub_value
            continue
        elif isinstance(value, list):
            value = ";".join(map(str, value))
        row[key] = value
    return row


def write_records_csv(records: Iterable, file_path: str) -> int:
    rows = [_to_row(record) for record in records]
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    pd.DataFrame(rows).to_csv(file_path, index=False)
    return len(rows)


def write_master_gyms_csv(gyms: Iterable[MasterGym], file_path: str) -> int:
    return write_records_csv(sorted(gyms, key=lambda g: g.search_key), file_path)


def write_source_gyms_csv(gyms: Iterable[SourceGym], file_path: str) -> int:
    return write_records_csv(sorted(gyms, key=lambda g: (g.org.value, g.external_id)), file_path)


def write_pending_matches_csv(matches: Iterable[PendingMatch], file_path: str) -> int:
    return write_records_csv(sorted(matches, key=lambda m: -m.confidence), file_path)


def write_tournaments_csv(tournaments: Iterable[Tournament], file_path: str) -> int:
    return write_records_csv(tournaments, file_path)
