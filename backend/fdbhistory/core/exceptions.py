"""Exception hierarchy for FDB History."""


class FdbHistoryError(Exception):
    """Base class for all FDB History errors."""


class StoreUnavailableError(FdbHistoryError):
    """History store cannot be reached or its table is missing.

    Treated as a fatal setup error: the batch job exits non-zero and the
    schema is never created implicitly.
    """


class ReconcileError(FdbHistoryError):
    """A reconciliation cycle failed and its writes were rolled back."""


class RetentionError(FdbHistoryError):
    """The retention sweep failed and its deletes were rolled back."""


class SyncAlreadyRunningError(FdbHistoryError):
    """Another sync run holds the run lock."""


class InvalidMacFilterError(ValueError):
    """MAC search input that cannot match any address.

    The message is meant to be shown to the operator as-is.
    """
