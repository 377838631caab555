"""
CSV import of guardian and player rows.

Each row carries a guardian (email, first_name, last_name, region) and one
player (player_name, dob, gender). Malformed rows are reported and skipped;
the rest of the file is still imported.
"""

import logging
from datetime import datetime
from typing import Optional

import pandas as pd

from models.report import ImportReport
from models.errors import DuplicateError, ValidationError, TransientBackendError, RosterError
from utils.name_utils import NameUtils

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('email', 'first_name', 'last_name', 'region', 'player_name', 'dob', 'gender')
REQUIRED_FIELDS = ('email', 'player_name', 'dob', 'gender')
DOB_FORMATS = ('%Y-%m-%d', '%d/%m/%Y', '%d.%m.%Y')


def normalize_dob(value: str) -> str:
    """Accept ISO, DD/MM/YYYY and DD.MM.YYYY dates and return ISO text."""
    text = str(value).strip()
    for date_format in DOB_FORMATS:
        try:
            return datetime.strptime(text, date_format).date().isoformat()
        except ValueError:
            continue
    return text


class CsvImporter:
    """Imports roster rows into the player store."""

    def __init__(self, player_store, guardian_manager):
        self.player_store = player_store
        self.guardian_manager = guardian_manager

    def import_file(self, csv_file: str, delimiter: str = ',', encoding: str = 'utf-8') -> ImportReport:
        """Read a CSV file and import every row. Returns the import report."""
        df = pd.read_csv(csv_file, delimiter=delimiter, encoding=encoding, dtype=str, keep_default_na=False)
        logger.info(f"Loaded CSV with {len(df)} rows")
        return self.import_dataframe(df)

    def import_dataframe(self, df: pd.DataFrame) -> ImportReport:
        report = ImportReport(rows_total=len(df))
        df = df.rename(columns=lambda column: str(column).strip().lower())

        missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
        if missing:
            message = f"Missing required columns: {', '.join(missing)}"
            logger.error(message)
            for row_number in range(1, len(df) + 1):
                report.add_error(row_number, message)
            return report

        # Row numbers are 1-based and exclude the header
        for row_number, (_, row) in enumerate(df.iterrows(), start=1):
            error = self._import_row(row, report)
            if error:
                report.add_error(row_number, error)

        logger.info(
            f"Imported {report.imported} of {report.rows_total} rows "
            f"({report.duplicates} duplicates, {report.rejected} rejected)"
        )
        return report

    def _import_row(self, row: pd.Series, report: ImportReport) -> Optional[str]:
        """Import one row. Returns an error message, or None on success or duplicate."""
        values = {column: self._cell(row.get(column)) for column in REQUIRED_COLUMNS}
        empty = [column for column in REQUIRED_FIELDS if not values[column]]
        if empty:
            return f"Missing value for {', '.join(empty)}"

        first_name, last_name = NameUtils.split_full_name(values['player_name'])
        submission = {
            'first_name': first_name,
            'last_name': last_name,
            'date_of_birth': normalize_dob(values['dob']),
            'gender': values['gender'].lower(),
            'region': values['region']
        }

        try:
            display_name = NameUtils.full_name(values['first_name'], values['last_name'])
            guardian_id, created = self.guardian_manager.ensure_guardian(
                values['email'], display_name, values['region'] or None
            )
            if created:
                logger.debug(f"Created guardian {guardian_id} for {values['email']}")
            self.player_store.add(guardian_id, submission)
            report.imported += 1
            return None
        except DuplicateError:
            report.duplicates += 1
            logger.debug(f"Skipping duplicate player {values['player_name']} for {values['email']}")
            return None
        except ValidationError as e:
            return f"{e.field}: {e.message}"
        except TransientBackendError:
            raise
        except RosterError as e:
            return str(e)

    @staticmethod
    def _cell(value) -> str:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return ''
        return str(value).strip()
