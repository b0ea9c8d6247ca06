import sqlite3
import logging
import pandas as pd
from typing import Any, Optional
from pathlib import Path
from openpyxl.styles import PatternFill, Font
from openpyxl.styles.numbers import BUILTIN_FORMATS

log = logging.getLogger(__name__)

# Define styles as constants for reuse
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4F81BD", end_color="4F81BD", fill_type="solid")
SCREEN_ON_FILL = PatternFill(start_color="FFFFA0", end_color="FFFFA0", fill_type="solid")
SCREEN_OFF_FILL = PatternFill(start_color="E6E6FF", end_color="E6E6FF", fill_type="solid")
TEXT_FORMAT = BUILTIN_FORMATS[49]  # '@' (Text format)


def escape_formula(value: Any) -> Any:
    """
    Prepends a single quote to a string if it starts with a character
    that Excel might interpret as a formula, to prevent formula injection.

    :param value: The value to check and potentially escape.
    :return: The escaped string or the original value if no escape was needed.
    """
    if isinstance(value, str) and value.startswith(('=', '-', '+', '@')):
        return f"'{value}"
    return value


def get_events_from_database(db_path: Path) -> Optional[pd.DataFrame]:
    """
    Retrieve screen events from the SQLite database, oldest first.

    :param db_path: The file path to the SQLite database.
    :return: DataFrame with events or None if an error occurred.
    """
    log.debug(f"Connecting to database: {db_path}")
    try:
        with sqlite3.connect(db_path) as con:
            query = """
            SELECT
                _id as 'ID',
                timestamp as 'Timestamp',
                event_type as 'Event'
            FROM screen_events
            ORDER BY timestamp ASC, _id ASC;
            """
            df = pd.read_sql_query(query, con)
            log.info(f"Read {len(df)} screen events from the database.")
            return df
    except (sqlite3.Error, pd.errors.DatabaseError) as e:
        log.error(f"An error occurred while reading the database: {e}")
        return None


def style_sheet(ws, event_col_idx: int) -> None:
    """
    Styles the header, tints rows by event type and sizes the columns.

    :param ws: Excel worksheet.
    :param event_col_idx: 1-based index of the event column.
    """
    for cell in ws[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL

    fill_map = {'SCREEN_ON': SCREEN_ON_FILL, 'SCREEN_OFF': SCREEN_OFF_FILL}
    for row in ws.iter_rows(min_row=2, max_row=ws.max_row):
        fill_to_apply = fill_map.get(row[event_col_idx - 1].value)
        for cell in row:
            if fill_to_apply:
                cell.fill = fill_to_apply
            cell.number_format = TEXT_FORMAT

    column_widths = {}
    for row in ws.iter_rows():
        for i, cell in enumerate(row):
            if cell.value is not None:
                column_widths[i] = max(column_widths.get(i, 0), len(str(cell.value)))
    for i, width in column_widths.items():
        ws.column_dimensions[ws.cell(row=1, column=i + 1).column_letter].width = width + 2


def export_events_to_excel(db_path: Path, output_path: Path) -> bool:
    """
    Exports screen events from the SQLite database to a styled Excel file.

    :param db_path: The file path to the SQLite database.
    :param output_path: The file path where the Excel file will be saved.
    :return: True if a file was written.
    """
    if not Path(db_path).exists():
        log.error(f"Error: Database file not found at '{db_path}'")
        return False

    df = get_events_from_database(db_path)
    if df is None:
        return False
    if df.empty:
        log.warning("No screen events to export.")
        return False

    df['Event'] = df['Event'].apply(escape_formula)

    log.info(f"Writing data to Excel file: {output_path}")
    try:
        with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Screen Events')
            ws = writer.sheets['Screen Events']
            style_sheet(ws, df.columns.get_loc('Event') + 1)
        log.info(f"Export successful. File saved to: {Path(output_path).resolve()}")
        return True
    except Exception as e:
        log.error(f"An error occurred while writing or styling the Excel file: {e}")
        return False
