"""Custom exceptions for CardQuill."""

from typing import List, Optional


class CardQuillError(Exception):
    """Base exception for CardQuill errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ParsingError(CardQuillError):
    """Exception raised when a markup fragment cannot be parsed."""

    pass


class StyleError(CardQuillError):
    """Exception raised for style values outside the canonical domain."""

    pass


class ConsistencyCheckFailed(CardQuillError):
    """Exception raised when preview and export surfaces carry different text."""

    def __init__(self, message: str, preview_text: str = "", export_text: str = ""):
        super().__init__(message, details=_diff_hint(preview_text, export_text))
        self.preview_text = preview_text
        self.export_text = export_text


class ImageLoadError(CardQuillError):
    """Exception raised while loading an image referenced by a fragment."""

    pass


class RasterizationFailed(CardQuillError):
    """Exception raised when both the primary and the fallback render failed."""

    def __init__(self, message: str, attempts: Optional[List[str]] = None,
                 details: Optional[str] = None):
        super().__init__(message, details=details)
        self.attempts = list(attempts or [])


def _diff_hint(preview_text: str, export_text: str) -> Optional[str]:
    if preview_text == export_text:
        return None
    for index, (left, right) in enumerate(zip(preview_text, export_text)):
        if left != right:
            return f"first difference at offset {index}"
    return f"length {len(preview_text)} != {len(export_text)}"
