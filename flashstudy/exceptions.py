from typing import Optional


class FlashstudyError(Exception):
    """Base exception for flashstudy errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class ProgressValidationError(FlashstudyError):
    """Raised when a stored session progress snapshot cannot be resumed."""

    pass


class CardStoreError(FlashstudyError):
    """Raised for errors during card store operations."""

    pass


class ClozeFormatError(FlashstudyError, ValueError):
    """Indicates cloze text without any usable deletion markers."""

    pass
