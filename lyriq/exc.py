class DoesNotExist(Exception):  # noqa: N818
    """Exception raised when a resource does not exist."""

    def __init__(self, resource_type: str, resource_id: int | str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f'{resource_type} with ID "{resource_id!s}" does not exist')


class AlreadyExists(Exception):  # noqa: N818
    """Exception raised when a resource already exists."""

    def __init__(self, resource_type: str, resource_id: int | str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f'{resource_type} with ID "{resource_id!s}" already exists')


class RecordingError(Exception):
    """Base class for failures of a recording session."""


class PermissionDenied(RecordingError):  # noqa: N818
    """Exception raised when microphone access is denied or blocked."""

    def __init__(self, reason: str = "Microphone access was denied"):
        self.reason = reason
        super().__init__(reason)


class CaptureFailed(RecordingError):  # noqa: N818
    """Exception raised when the recorder cannot start or the stream is gone."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Audio capture failed: {reason}")


class RecordingInProgress(RecordingError):  # noqa: N818
    """Exception raised when a session is started while another is open."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f'A recording session is already open (state "{state}")')


class InvalidTransition(RecordingError):  # noqa: N818
    """Exception raised when an action is not legal in the current state."""

    def __init__(self, state: str, action: str):
        self.state = state
        self.action = action
        super().__init__(f'Cannot "{action}" while recording session is "{state}"')


class TranscriptionFailed(Exception):  # noqa: N818
    """Exception raised when the AI transcription service call fails."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Transcription failed: {reason}")
