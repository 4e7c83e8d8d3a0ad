from types import MappingProxyType

# Letter grade -> grade points
GRADE_POINTS_MAP = MappingProxyType({
    "A+": 10,
    "A": 9,
    "B": 8,
    "C": 7,
    "D": 6,
    "E": 5,
    "F": 0,
    "AB": 0,
})


def compute_grade_points(grade):
    """
    Looks up the grade points for a letter grade.
    Unknown grades have no derivable value and return an empty string.
    """
    g = str(grade or "").upper().strip()
    return GRADE_POINTS_MAP.get(g, "")
