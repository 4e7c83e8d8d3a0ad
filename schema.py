import re
from types import MappingProxyType

# ---------------------------------------------------
# CANONICAL SCHEMA
# ---------------------------------------------------

# Output column order of every exported CSV
CANONICAL_FIELDS = (
    "Roll Number",
    "Student Name",
    "Class",
    "Section",
    "Department",
    "Year",
    "Semester",
    "Subject Code",
    "Subject Name",
    "Grade",
    "Grade Points",
    "Credits",
)

# Fields that cannot be derived and must be asked for when a document lacks them
REQUIRED_FIELDS = ("Class", "Section", "Department", "Year", "Semester")

# Fields that identify the student; the rest describe one subject
STUDENT_FIELDS = frozenset([
    "Roll Number", "Student Name", "Class", "Section", "Department", "Year", "Semester"
])
SUBJECT_FIELDS = frozenset([
    "Subject Code", "Subject Name", "Grade", "Grade Points", "Credits"
])

# Serial number columns carry no information and are skipped
NOISE_HEADERS = frozenset(["sno", "slno", "serialno", "serialnumber"])

# ---------------------------------------------------
# HEADER SYNONYMS
# ---------------------------------------------------

# Normalized header spelling -> canonical field
HEADER_SYNONYMS = MappingProxyType({
    # Roll Number
    "roll": "Roll Number",
    "rollno": "Roll Number",
    "rollnum": "Roll Number",
    "rollnumber": "Roll Number",
    "regno": "Roll Number",
    "registrationno": "Roll Number",
    "htno": "Roll Number",  # Hall Ticket Number
    "hallticket": "Roll Number",
    "hallticketno": "Roll Number",
    # Student Name
    "name": "Student Name",
    "student": "Student Name",
    "studentname": "Student Name",
    # Class
    "class": "Class",
    "classname": "Class",
    # Section
    "section": "Section",
    "sec": "Section",
    # Department
    "dept": "Department",
    "department": "Department",
    # Year
    "year": "Year",
    "yr": "Year",
    "academicyear": "Year",
    # Semester
    "sem": "Semester",
    "semester": "Semester",
    # Subject Code
    "subjectcode": "Subject Code",
    "subcode": "Subject Code",
    "code": "Subject Code",
    # Subject Name
    "subject": "Subject Name",
    "subjectname": "Subject Name",
    "subname": "Subject Name",
    "sub": "Subject Name",
    # Grade
    "grade": "Grade",
    "gradeletter": "Grade",
    # Grade Points
    "gradepoints": "Grade Points",
    "gp": "Grade Points",
    "sgpa": "Grade Points",
    # Credits
    "credit": "Credits",
    "credits": "Credits",
    "cr": "Credits",
})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize(s):
    """
    Lowercases a header and strips everything except a-z and 0-9,
    so 'Roll No.', 'ROLL_NO' and 'roll-no' all become 'rollno'.
    """
    return _NON_ALNUM.sub("", str(s or "").lower())


# Exact-name fallback: normalized canonical name -> canonical field
_CANONICAL_BY_KEY = MappingProxyType({normalize(field): field for field in CANONICAL_FIELDS})


def resolve_header(header):
    """
    Resolves a single header or label to its canonical field.
    Synonyms are checked first, then the canonical names themselves.
    Returns None for serial-number columns and unknown headers.
    """
    key = normalize(header)
    if not key or key in NOISE_HEADERS:
        return None
    if key in HEADER_SYNONYMS:
        return HEADER_SYNONYMS[key]
    return _CANONICAL_BY_KEY.get(key)


def build_header_map(headers):
    """
    Builds the canonical field -> source header mapping for one document.
    The first header that resolves to a field keeps it; later duplicates
    and unknown headers are dropped without error.
    """
    header_map = {}
    for header in headers:
        target = resolve_header(header)
        if target and target not in header_map:
            header_map[target] = header
    return header_map
