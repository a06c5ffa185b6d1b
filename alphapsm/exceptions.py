"""Exceptions raised by match collection operations.

Three families are distinguished:

- ``PreconditionError`` and subclasses: programming or configuration errors
  (capacity exceeded, merge of differently scored collections, a second
  iterator on a locked collection). These are not meant to be caught.
- ``InsufficientDataError``: too little data for an analysis step. Callers
  may catch it and fall back to a degraded analysis.
- ``CsmFormatError``: a persisted ``.csm`` file is truncated or was written
  with a different modification table.
"""


class CustomError(Exception):
    """Base class for alphapsm errors."""

    _error_code = ""
    _msg = ""
    _detail_msg = ""

    @property
    def error_code(self):
        return self._error_code

    @property
    def msg(self):
        return self._msg

    @property
    def detail_msg(self):
        return self._detail_msg

    def __init__(self, detail_msg: str = ""):
        self._detail_msg = detail_msg
        super().__init__(detail_msg or self._msg)

    def __str__(self):
        if self._detail_msg:
            return f"{self._error_code}: {self._msg} {self._detail_msg}"
        return f"{self._error_code}: {self._msg}"


class PreconditionError(CustomError, RuntimeError):
    """Raise when an operation is called in a state it does not allow."""

    _error_code = "PRECONDITION_VIOLATED"

    _msg = "Operation precondition violated."


class IteratorLockedError(PreconditionError):
    """Raise when a collection is mutated or re-locked while an iterator is live."""

    _error_code = "ITERATOR_LOCKED"

    _msg = "Can only have one match iterator instantiated at a time."


class CapacityExceededError(PreconditionError):
    """Raise when adding matches would exceed the collection capacity."""

    _error_code = "CAPACITY_EXCEEDED"

    _msg = "Match count exceeds max match limit."


class ScoreTypeMismatchError(PreconditionError):
    """Raise when merging collections scored for different types."""

    _error_code = "SCORE_TYPE_MISMATCH"

    _msg = "Cannot merge match collections scored for different types."


class NotScoredError(PreconditionError):
    """Raise when an operation needs a score type the collection lacks."""

    _error_code = "NOT_SCORED"

    _msg = "The match collection has not been scored for the requested score type."


class InsufficientDataError(CustomError, RuntimeError):
    """Raise when too little data is available for a statistical estimate."""

    _error_code = "INSUFFICIENT_DATA"

    _msg = "Not enough data available to perform the task."


class CsmFormatError(CustomError, ValueError):
    """Raise when a serialized match file cannot be parsed."""

    _error_code = "CSM_FORMAT"

    _msg = "Serialized file corrupted."
