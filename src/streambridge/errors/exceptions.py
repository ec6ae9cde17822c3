"""Custom exception classes for the StreamBridge API."""


class StreamBridgeError(Exception):
    """Base exception for StreamBridge."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(StreamBridgeError):
    """Malformed create input (missing source URL, unknown quality, ...)."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(StreamBridgeError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class InvalidStateError(StreamBridgeError):
    """Operation not allowed in the stream's current status."""

    def __init__(self, message: str, details=None):
        super().__init__("INVALID_STATE", message, details, status_code=409)


class LaunchError(StreamBridgeError):
    """The encoder process could not be started."""

    def __init__(self, stream_id: str, reason: str):
        self.stream_id = stream_id
        super().__init__(
            "LAUNCH_ERROR",
            f"Encoder for stream '{stream_id}' failed to start: {reason}",
            status_code=500,
        )


class TeardownPartialFailure(StreamBridgeError):
    """Some output files of a stream could not be removed.

    ``failures`` maps each path that survived to the error raised while removing it.
    Callers log this and carry on deleting the record.
    """

    def __init__(self, stream_id: str, failures: dict[str, str]):
        self.stream_id = stream_id
        self.failures = failures
        super().__init__(
            "TEARDOWN_PARTIAL_FAILURE",
            f"{len(failures)} file(s) of stream '{stream_id}' could not be removed",
            details=failures,
            status_code=500,
        )
