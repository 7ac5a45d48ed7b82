class SegmentMergerError(Exception):
    """Base class for all segment merger errors."""


class FetchError(SegmentMergerError):
    def __init__(self, status_code, message):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class ProbeError(SegmentMergerError):
    pass


class MergeError(SegmentMergerError):
    pass


class EmptyInputError(SegmentMergerError):
    """Raised when there is nothing left to merge."""
