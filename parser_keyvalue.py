import re

from rows import finalize_row
from schema import STUDENT_FIELDS, SUBJECT_FIELDS, resolve_header

# "Label: value"; the colon is tried first so hyphenated labels (Sub-Code: CS101) stay whole
COLON_PATTERN = re.compile(r"^([^:]+?)\s*:\s*(.+)$")
# "Label - value" or "Label – value"; a dash inside a word (Roll-No) is not a separator
DASH_PATTERN = re.compile(r"^(.*?)(?:\s+[-–]\s*|\s*[-–]\s+)(.+)$")

# Fields shared by every student of a cohort; kept when the next roll number starts
COHORT_FIELDS = ("Class", "Section", "Department", "Year", "Semester")

# A subject block is only flushed if it names the subject or its grade
SUBJECT_ANCHORS = ("Subject Code", "Subject Name", "Grade")


def parse_key_value(line):
    """
    Splits a 'label: value' line into (canonical field, value).
    Returns (None, None) when the line has no such shape or the label is unknown.
    """
    line = line.strip()
    for pattern in (COLON_PATTERN, DASH_PATTERN):
        match = pattern.match(line)
        if match:
            target = resolve_header(match.group(1))
            if target:
                return target, match.group(2).strip()
    return None, None


def has_key_value_lines(text):
    """True when at least one line is a 'label: value' pair with a known label."""
    return any(parse_key_value(line)[0] for line in re.split(r"\r?\n", text or "") if line.strip())


def parse_key_values(text):
    """
    Parses documents that list one field per line, for example:

        Roll No: 21A1
        Name: J Doe
        Subject Code: CS101
        Grade: B

    Student fields update the running student context; subject fields
    accumulate until a Grade closes the subject block.
    """
    rows = []
    context = {}
    subject = {}

    def flush_subject():
        if any(subject.get(field) for field in SUBJECT_ANCHORS):
            merged = dict(context)
            merged.update(subject)
            rows.append(finalize_row(merged))
        subject.clear()

    for line in re.split(r"\r?\n", text or ""):
        if not line.strip():
            continue
        target, value = parse_key_value(line)
        if not target:
            continue

        if target in STUDENT_FIELDS:
            if target == "Roll Number":
                flush_subject()
                context = {field: context[field] for field in COHORT_FIELDS if field in context}
            context[target] = value
            continue

        if target in SUBJECT_FIELDS:
            subject[target] = value
            if target == "Grade":
                flush_subject()

    flush_subject()
    return rows
