"""Failures raised by the relay pipeline.

Each pipeline step raises its own subclass of `RelayError`. The message is
what the caller sees; vendor detail only goes to the log.
"""


class RelayError(Exception):
    status_code = 500
    default_message = "An internal server error occurred."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ValidationFailure(RelayError):
    status_code = 400
    default_message = "HTML content is required."


class AuthenticationFailure(RelayError):
    default_message = "Failed to authenticate with Adobe."


class UploadFailure(RelayError):
    default_message = "Failed to upload HTML asset to Adobe."


class JobSubmissionFailure(RelayError):
    default_message = "Failed to start PDF conversion job."


class PollingFailure(RelayError):
    default_message = "Failed while polling for job status."


class JobFailure(RelayError):
    def __init__(self, status: str, message: str | None = None) -> None:
        self.status = status
        super().__init__(message or f"PDF generation failed with status: {status}")


class JobTimeout(JobFailure):
    def __init__(self, status: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            status,
            f"PDF generation timed out after {attempts} status checks (last status: {status})",
        )


class StreamingFailure(RelayError):
    default_message = "Failed to download the generated PDF."
