import re

from parser_keyvalue import parse_key_value
from rows import finalize_row
from schema import resolve_header

# ---------------------------------------------------
# HEADER LINE DETECTION
# ---------------------------------------------------

# Keywords that mark the column header line of a tabular result sheet.
# Punctuation or spaces inside a keyword are tolerated (S.NO, HALL TICKET, SUB-CODE).
# Only the first matching line counts. A title such as "SEMESTER GRADE REPORT" above
# the real header is taken as the header, its rows carry no anchor field, and the
# document falls through to the next strategy.
HEADER_KEYWORDS = (
    re.compile(r"\b(?:S\W?NO|SL\W?NO|SERIAL)\b", re.IGNORECASE),
    re.compile(r"\b(?:HTNO|HALL\W*TICKET|ROLL\W*NO|ROLL\W*NUMBER|REG\W*NO)\b", re.IGNORECASE),
    re.compile(r"\b(?:SUBCODE|SUB\W*CODE|SUBJECT\W*CODE)\b", re.IGNORECASE),
    re.compile(r"\b(?:SUBNAME|SUB\W*NAME|SUBJECT\W*NAME|SUBJECT)\b", re.IGNORECASE),
    re.compile(r"\b(?:GRADE|GRD)\b", re.IGNORECASE),
    re.compile(r"\b(?:CREDITS|CR)\b", re.IGNORECASE),
)

# Lines shorter than this are page furniture, not data
MIN_LINE_LENGTH = 5

# A row needs one of these to be worth keeping
ANCHOR_FIELDS = ("Roll Number", "Subject Code", "Subject Name")


def split_lines(text):
    return [line.strip() for line in re.split(r"\r?\n", text or "") if line.strip()]


def is_key_value_line(line):
    # "Label: value" lines belong to the key-value layout, never to a table header
    return parse_key_value(line)[0] is not None


def find_header_line(lines):
    """
    Returns (index, line) of the first column header line, or (-1, None).
    """
    for i, line in enumerate(lines):
        if is_key_value_line(line):
            continue
        if any(pattern.search(line) for pattern in HEADER_KEYWORDS):
            return i, line
    return -1, None


def map_columns(header_line):
    """
    Maps each canonical field found in the header line to its word position.
    Words that do not resolve to a field are ignored.
    """
    column_map = {}
    for index, word in enumerate(header_line.split()):
        target = resolve_header(word)
        if target and target not in column_map:
            column_map[target] = index
    return column_map


# ---------------------------------------------------
# TABULAR PARSER
# ---------------------------------------------------

def parse_table(text):
    """
    Parses result sheets laid out as a header line followed by one
    whitespace-separated data line per subject.
    """
    lines = split_lines(text)
    header_index, header_line = find_header_line(lines)
    if header_index == -1:
        return []

    print(f"[DEBUG] Header line found: {header_line}")
    column_map = map_columns(header_line)
    print(f"[DEBUG] Column mapping: {column_map}")
    if not column_map:
        return []

    rows = []
    for line in lines[header_index + 1:]:
        if len(line) < MIN_LINE_LENGTH:
            continue

        values = line.split()
        row = {}
        for target, col_index in column_map.items():
            if col_index < len(values):
                row[target] = values[col_index]

        # Skip decorative lines that carry no identifying data
        if any(row.get(field) for field in ANCHOR_FIELDS):
            rows.append(finalize_row(row))

    return rows
