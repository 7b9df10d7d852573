from typing import Optional


class UploadValidationError(Exception):
    """Raised before any network call when an upload is not acceptable."""


class EmptyFileError(UploadValidationError):
    pass


class OversizedFileError(UploadValidationError):
    pass


class InvalidFileTypeError(UploadValidationError):
    pass


class InvalidLinkError(UploadValidationError):
    pass


class ProviderError(Exception):
    """A storage provider answered with a non-success status or an error payload."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class MailerError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)
