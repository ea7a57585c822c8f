"""Exceptions for the robot detector application."""


class RobotScannerError(Exception):
    """Base exception for robot scanner errors."""


class DeliveryError(RobotScannerError):
    """No sink accepted a detection."""


class InstrumentDirectoryError(RobotScannerError):
    """Instrument metadata could not be loaded.

    Raised for HTTP error responses and for payloads that do not have the
    expected shape.
    """

    def __init__(self, msg: str, status_code: int | None = None) -> None:
        """Initialize the directory error.

        Args:
            msg: Human-readable error message.
            status_code: HTTP status code, when the failure came from a response.

        """
        super().__init__(msg if status_code is None else f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code
