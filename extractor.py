import os

import pandas as pd
import pdfplumber

from parser_keyvalue import has_key_value_lines, parse_key_values
from parser_pattern import parse_patterns
from parser_table import parse_table
from rows import finalize_row
from schema import build_header_map

# Tried in order; the first strategy that yields rows wins
STRATEGIES = (
    ("table", parse_table),
    ("pattern", parse_patterns),
    ("key_value", parse_key_values),
)

# Documents written as "label: value" lines go to the key-value parser before
# pattern matching, which would otherwise claim any 8-12 character roll number
# and drop every labelled field around it
KEY_VALUE_STRATEGIES = (
    ("table", parse_table),
    ("key_value", parse_key_values),
    ("pattern", parse_patterns),
)

NO_DATA_MESSAGE = "No data found: could not detect any result rows. Try a CSV or a clearer PDF export."


# ---------------------------------------------------
# DOCUMENT TEXT (PDF)
# ---------------------------------------------------

def read_pdf_pages(pdf_path):
    """
    Returns the text of every page in reading order, one string per page.
    Pages without a text layer give an empty string.
    """
    with pdfplumber.open(pdf_path) as pdf:
        return [
            p.extract_text(x_tolerance=3, y_tolerance=3) or ""
            for p in pdf.pages
        ]


def strategies_for(text):
    return KEY_VALUE_STRATEGIES if has_key_value_lines(text) else STRATEGIES


def extract_rows(page_texts):
    """
    Runs the extraction strategies over the document text.
    Returns (strategy_name, rows), or (None, []) when nothing matched.
    """
    full_text = "\n".join(page_texts)
    for name, strategy in strategies_for(full_text):
        rows = strategy(full_text)
        if rows:
            print(f"[INFO] Strategy '{name}' extracted {len(rows)} rows")
            return name, rows
        print(f"[DEBUG] Strategy '{name}' found nothing, falling through")
    return None, []


# ---------------------------------------------------
# DELIMITED TEXT (CSV)
# ---------------------------------------------------

def read_delimited(csv_path):
    """
    Reads a CSV export as plain strings. Returns (headers, records).
    """
    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False, skip_blank_lines=True)
    headers = [str(c) for c in df.columns]
    return headers, df.to_dict(orient="records")


def rows_from_records(headers, records):
    """
    Maps delimited records onto the canonical schema using one header map
    for the whole file.
    """
    header_map = build_header_map(headers)
    print(f"[DEBUG] Header map: {header_map}")

    rows = []
    for record in records:
        partial = {}
        for target, source in header_map.items():
            partial[target] = record.get(source, "")
        rows.append(finalize_row(partial))
    return rows


# ---------------------------------------------------
# ENTRY POINT
# ---------------------------------------------------

def main(file_path):
    """
    Extracts candidate rows from a PDF or CSV result file.
    Returns {"success": True, "source": ..., "rows": [...]} or
    {"success": False, "error": ...}.
    """
    ext = os.path.splitext(file_path)[1].lower()

    if ext == ".csv":
        try:
            headers, records = read_delimited(file_path)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            print(f"[ERROR] CSV parse error in {file_path}: {e}")
            return {"success": False, "error": f"CSV parse error: {e}"}

        rows = rows_from_records(headers, records)
        if not rows:
            return {"success": False, "error": NO_DATA_MESSAGE}
        return {"success": True, "source": "delimited", "rows": rows}

    if ext == ".pdf":
        try:
            page_texts = read_pdf_pages(file_path)
        except Exception as e:
            # Damaged or encrypted files surface here
            print(f"[ERROR] PDF read failure in {file_path}: {e}")
            return {"success": False, "error": f"PDF parse failed: {e}"}

        print(f"[DEBUG] Read {len(page_texts)} pages from {file_path}")
        source, rows = extract_rows(page_texts)
        if not rows:
            return {"success": False, "error": NO_DATA_MESSAGE}
        return {"success": True, "source": source, "rows": rows}

    return {"success": False, "error": f"Unsupported file type '{ext or file_path}': upload a .pdf or .csv file."}
