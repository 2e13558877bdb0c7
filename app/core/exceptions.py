class ReportError(Exception):
    """Base class for every failure raised while computing a report section."""


class DataAccessError(ReportError):
    """The data source could not be reached or rejected the statement."""


class InputValidationError(ReportError):
    """Input data or parameters violate a precondition of a computation.

    Raised for non-positive elapsed days in rate normalization, an empty
    invoice table when deriving the as-of date, unparseable dates and
    parameters that do not match a query definition.
    """


class AmbiguousClassificationError(ReportError):
    """An invoice spans several albums and the configured policy is ``raise``."""


class DivisionByZeroError(ReportError, ZeroDivisionError):
    """A percentage was requested against a reference total of zero."""
