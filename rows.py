import io

import pandas as pd

from grades import compute_grade_points
from schema import CANONICAL_FIELDS


def has_value(val):
    """
    True when a cell carries data. None and whitespace-only strings count as empty.
    """
    return val is not None and str(val).strip() != ""


# ---------------------------------------------------
# ROW FINALIZER
# ---------------------------------------------------

def finalize_row(row, overrides=None, default_credits=None):
    """
    Completes a partial row into one with every canonical field present.

    Values already parsed from the document win over caller overrides, so
    re-running completion never discards confirmed data. Grade Points is
    derived from the Grade when missing; an unknown grade leaves it empty.
    """
    overrides = overrides or {}
    merged = {}
    for field in CANONICAL_FIELDS:
        val = row.get(field)
        if not has_value(val):
            val = overrides.get(field)
        merged[field] = val if has_value(val) else ""

    if not has_value(merged["Credits"]) and has_value(default_credits):
        merged["Credits"] = default_credits

    if not has_value(merged["Grade Points"]) and has_value(merged["Grade"]):
        merged["Grade Points"] = compute_grade_points(merged["Grade"])
        if merged["Grade Points"] == "":
            print(f"[DEBUG] No grade points for grade '{merged['Grade']}' ({merged['Roll Number']})")

    return merged


# ---------------------------------------------------
# EXPORT
# ---------------------------------------------------

def _escape(val):
    s = "" if val is None else str(val)
    if "," in s or "\n" in s or '"' in s:
        return '"' + s.replace('"', '""') + '"'
    return s


def to_csv(rows):
    """
    Serializes finalized rows into the canonical CSV text.
    Fields holding a comma, newline or double quote are quoted with inner quotes doubled.
    """
    lines = [",".join(CANONICAL_FIELDS)]
    for row in rows:
        lines.append(",".join(_escape(row.get(field, "")) for field in CANONICAL_FIELDS))
    return "\n".join(lines)


def to_xlsx(rows):
    """
    Writes the same rows into an in-memory Excel workbook, ready for send_file.
    """
    df = pd.DataFrame(
        [[row.get(field, "") for field in CANONICAL_FIELDS] for row in rows],
        columns=list(CANONICAL_FIELDS),
    )

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df.to_excel(writer, index=False, sheet_name='Results')

    output.seek(0)
    return output
