"""Exceptions raised by the grade sheet import core."""


class GradeImportError(Exception):
    """Base class for grade import errors."""


class ImportRequestError(GradeImportError):
    """
    The request as a whole is malformed or not confirmed.

    Raised before any row is processed, so nothing has been changed.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
