# writeedge/core/errors.py
from fastapi import status


class WriteEdgeError(Exception):
    """Base class for domain errors that map onto an HTTP error envelope."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "WRITEEDGE_ERROR"
    # Whether a background evaluation attempt failing with this error may be retried
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(WriteEdgeError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"


class DuplicateSubmissionError(WriteEdgeError):
    error_code = "DUPLICATE_SUBMISSION"

    def __init__(self, student_id: int, test_id: int):
        super().__init__("You have already submitted this test")
        self.student_id = student_id
        self.test_id = test_id


class InvalidSubmissionError(WriteEdgeError):
    error_code = "INVALID_SUBMISSION"


class AIServiceError(WriteEdgeError):
    """The generative API failed after the client's own retries."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "AI_SERVICE_ERROR"

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class MalformedAIResponseError(WriteEdgeError):
    """Model output could not be validated against the evaluation schema."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "MALFORMED_AI_RESPONSE"
    retryable = True


class TestUnavailableError(WriteEdgeError):
    """The test exists but is outside its start/deadline window."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "TEST_UNAVAILABLE"
