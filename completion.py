from dataclasses import dataclass
from enum import Enum

from rows import finalize_row, has_value, to_csv
from schema import CANONICAL_FIELDS, REQUIRED_FIELDS


class CompletionError(Exception):
    """Raised when the workflow is driven out of order or has nothing to work on."""


class State(Enum):
    EXTRACTING = "extracting"
    AWAITING_REQUIRED_FIELDS = "awaiting_required_fields"
    AWAITING_CREDITS = "awaiting_credits"
    COMPLETE = "complete"


@dataclass(frozen=True)
class PendingRequest:
    """
    What the caller must supply before the rows can be exported.
    Exactly one of missing_required_fields / subjects_needing_credits is set.
    """
    rows: tuple
    missing_required_fields: tuple = ()
    subjects_needing_credits: tuple = ()

    @property
    def kind(self):
        return "required_fields" if self.missing_required_fields else "credits"

    @property
    def items(self):
        return self.missing_required_fields or self.subjects_needing_credits

    def as_dict(self):
        rows = [dict(r) for r in self.rows]
        if self.missing_required_fields:
            return {"missingRequiredFields": list(self.missing_required_fields), "rows": rows}
        return {"subjectsNeedingCredits": list(self.subjects_needing_credits), "rows": rows}


# ---------------------------------------------------
# VALIDATION HELPERS
# ---------------------------------------------------

def find_missing_required(rows):
    """Required fields that are empty in every row, in canonical order."""
    return tuple(
        field for field in REQUIRED_FIELDS
        if not any(has_value(r.get(field)) for r in rows)
    )


def subject_key(row):
    """A row's subject is its name, or its code when the name is missing."""
    name = row.get("Subject Name")
    if has_value(name):
        return str(name).strip()
    code = row.get("Subject Code")
    return str(code).strip() if has_value(code) else ""


def find_subjects_needing_credits(rows):
    """
    Distinct subjects in encounter order, but only when subjects were
    detected and no row carries a Credits value at all.
    """
    if any(has_value(r.get("Credits")) for r in rows):
        return ()
    seen = []
    for r in rows:
        key = subject_key(r)
        if key and key not in seen:
            seen.append(key)
    return tuple(seen)


# ---------------------------------------------------
# WORKFLOW
# ---------------------------------------------------

class CompletionWorkflow:
    """
    Turns extracted rows into exportable rows, asking the caller for
    anything that cannot be derived.

    EXTRACTING -> AWAITING_REQUIRED_FIELDS -> AWAITING_CREDITS -> COMPLETE,
    where either waiting state is skipped when nothing is missing and a
    waiting state can repeat if the answers still leave gaps.
    """

    def __init__(self, default_credits=None):
        self.default_credits = default_credits
        self.state = State.EXTRACTING
        self.pending = None
        self.credits_resolved = False
        self._rows = ()

    @property
    def rows(self):
        return self._rows

    @property
    def is_complete(self):
        return self.state is State.COMPLETE

    def start(self, rows):
        if self.state is not State.EXTRACTING:
            raise CompletionError(f"Workflow already started (state: {self.state.value})")
        if not rows:
            raise CompletionError("No data found: nothing to complete.")
        self._rows = tuple(finalize_row(r) for r in rows)
        return self._validate()

    def supply(self, values):
        """
        Merges caller-supplied values into every pending row and re-validates.
        `values` maps field names (required round) or subject names
        (credits round) to the value to use.
        """
        if self.pending is None:
            raise CompletionError(f"No pending request to answer (state: {self.state.value})")

        values = values or {}
        request, self.pending = self.pending, None

        if self.state is State.AWAITING_REQUIRED_FIELDS:
            overrides = {
                field: values.get(field) for field in request.missing_required_fields
                if field in CANONICAL_FIELDS
            }
            self._rows = tuple(finalize_row(r, overrides) for r in request.rows)
        else:
            self._rows = tuple(
                finalize_row(
                    r,
                    {"Credits": values.get(subject_key(r))},
                    default_credits=self.default_credits,
                )
                for r in request.rows
            )
            self.credits_resolved = True

        return self._validate()

    def _validate(self):
        missing = find_missing_required(self._rows)
        if missing:
            print(f"[INFO] Missing required fields: {list(missing)}")
            self.state = State.AWAITING_REQUIRED_FIELDS
            self.pending = PendingRequest(rows=self._rows, missing_required_fields=missing)
            return self.pending

        if not self.credits_resolved:
            subjects = find_subjects_needing_credits(self._rows)
            if subjects:
                print(f"[INFO] Subjects needing credits: {len(subjects)}")
                self.state = State.AWAITING_CREDITS
                self.pending = PendingRequest(rows=self._rows, subjects_needing_credits=subjects)
                return self.pending

        self.state = State.COMPLETE
        self.pending = None
        return None

    def to_csv(self):
        if not self.is_complete:
            raise CompletionError(f"Rows are not complete yet (state: {self.state.value})")
        return to_csv(self._rows)
