"""Exception types raised by keydeck."""


class DeckError(RuntimeError):
    """Base class for all keypad errors."""


class UnknownDeviceError(DeckError):
    """Raised when discovery finds a product id with no supported layout."""


class NoDevicesError(DeckError):
    """Raised when discovery finds no device from the vendor."""

    def __init__(self, message: str = "no devices found"):
        super().__init__(message)


class InvalidKeyError(DeckError, ValueError):
    """Raised when a key index is outside the layout's logical range."""

    def __init__(self, key: int, key_count: int = 15):
        self.key = key
        super().__init__(f"invalid key {key} (valid: 0-{key_count - 1})")


class InvalidImageError(DeckError, ValueError):
    """Raised when a key image is not a PNG or does not fit the canvas."""


class DeckIOError(DeckError, OSError):
    """Transport read/write failure, wrapped with operation context.

    The underlying transport error is available as ``__cause__``.
    """
