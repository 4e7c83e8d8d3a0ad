import re

from rows import finalize_row

# ---------------------------------------------------
# TOKEN PATTERNS
# ---------------------------------------------------

# Hall ticket / roll number: 8-12 upper-case alphanumerics with at least one digit (e.g. 22HJ1A4311)
ROLL_PATTERN = re.compile(r"\b(?=[A-Z]*\d)([A-Z0-9]{8,12})\b")

# Subject code: 2-4 letters, 3-4 digits, optional trailing letter (e.g. CS101, MATH2001A)
SUBJECT_CODE_PATTERN = re.compile(r"\b([A-Z]{2,4}[0-9]{3,4}[A-Z]?)\b")

# Grade letter standing on its own (A+, AB, A-F)
GRADE_PATTERN = re.compile(r"(?<![A-Za-z0-9+])(A\+|AB|[A-F])(?![A-Za-z0-9+])")

# How far past a roll number to look for its subject code and grade
LOOKAHEAD_CHARS = 200


def parse_patterns(text):
    """
    Fallback for documents whose layout defeats line splitting.
    Each roll number is paired with the nearest subject code and grade
    found in the text right after it. Nearby tokens that belong to a
    different record can be picked up; there is no way to tell them apart here.
    """
    text = text or ""
    rows = []

    roll_matches = list(ROLL_PATTERN.finditer(text))
    print(f"[DEBUG] Found potential roll numbers: {len(roll_matches)}")

    for roll_match in roll_matches:
        start = roll_match.end()
        segment = text[start:start + LOOKAHEAD_CHARS]

        code_match = SUBJECT_CODE_PATTERN.search(segment)
        grade_match = GRADE_PATTERN.search(segment)
        if not code_match and not grade_match:
            continue

        row = {"Roll Number": roll_match.group(1)}
        if code_match:
            row["Subject Code"] = code_match.group(1)
        if grade_match:
            row["Grade"] = grade_match.group(1)
        rows.append(finalize_row(row))

    return rows
