"""Errors raised by the simulation core."""


class ConfigurationError(ValueError):
    """Mine count or board size cannot produce a playable board."""


class InvalidCoordinateError(IndexError):
    """A cell outside the board was addressed."""

    def __init__(self, x: int, y: int, width: int, height: int):
        super().__init__(f"Cell ({x}, {y}) is outside a {width}x{height} board")
        self.x = x
        self.y = y
