"""
Error taxonomy for the tissue audit.

Only structural problems are fatal. A malformed row is rejected on its own and
the rest of the batch keeps going; missing concentrations and empty weight-basis
groups are ordinary data conditions and never raise inside the checkers.
"""


class SchemaError(ValueError):
    """Raised when a table lacks required columns. Aborts the audit before any check runs."""


class MalformedRecordError(ValueError):
    """A single row could not be turned into a MeasurementRecord."""


class MissingValueError(ValueError):
    """
    Raised only when a caller explicitly asks for a concentration that is absent.

    The checkers themselves treat missing concentrations as "excluded from the
    aggregate" and never raise this.
    """


class EmptyGroupCondition(Warning):
    """
    A (Code, Parameter) group has no observations for one or more weight bases.

    Not raised by the checkers: the condition shows up as NaN means and is
    resolved by MissingBasisPolicy.
    """
