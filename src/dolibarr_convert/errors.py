from __future__ import annotations


class ConversionError(Exception):
    """Base class for every error raised by a conversion call."""


class InputError(ConversionError, ValueError):
    """The source document or table cannot be used; no partial result."""


class FeedParseError(InputError):
    pass


class EmptyWorkbookError(InputError):
    pass


class SheetNotFoundError(InputError):
    pass


class HeaderNotFoundError(InputError):
    pass


class UnsupportedFormatError(InputError):
    pass


class UnknownConversionError(ConversionError, KeyError):
    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Unknown conversion: {slug}")

    def __str__(self) -> str:
        return self.args[0]
