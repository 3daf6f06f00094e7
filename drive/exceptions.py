"""Custom exception classes for the drive engine."""

RETRY_HINT = "This looks temporary. Please try again in a moment."
CREDENTIALS_HINT = "Please re-enter your credentials: login <token>"


class DriveException(Exception):
    """
    Base exception class for all drive errors.

    Every subclass carries a short user-facing hint.
    """
    hint = ""

    def user_message(self) -> str:
        message = str(self) or self.__class__.__name__
        return f"{message}. {self.hint}" if self.hint else message


class CredentialMissingError(DriveException):
    """
    Raised when no usable auth token or wallet signature is configured.
    """
    hint = CREDENTIALS_HINT


class MissingSecretError(CredentialMissingError):
    """
    Raised when an encryption secret is required but empty.
    """
    hint = "Set an encryption secret with: secret <token>"


class AuthenticationFailedError(CredentialMissingError):
    """
    Raised when the relay rejects the configured credential.
    """


class NetworkUnavailableError(DriveException):
    """
    Raised when the relay cannot be reached or a request times out.
    """
    hint = RETRY_HINT


class UploadRejectedError(DriveException):
    """
    Raised when the relay refuses an upload or answers with an invalid response.
    """


class DownloadFailedError(DriveException):
    """
    Raised when a download answers non-2xx or exhausts its attempts.
    """
    hint = RETRY_HINT


class DownloadTimeoutError(DriveException):
    """
    Raised when a download hits the hard per-attempt time ceiling.
    """
    hint = "The file may be too large or the connection too slow. Please try again."


class EmptyPayloadError(DriveException):
    """
    Raised when a download produces zero bytes.
    """


class EncryptionFailedError(DriveException):
    """
    Raised when the encryption primitive fails.
    """


class DecryptionFailedError(DriveException):
    """
    Raised when decryption fails (wrong secret or corrupted data; indistinguishable).
    """
    hint = "Check that your encryption secret is the one used for upload."


class MemberNotFoundError(DriveException):
    """
    Raised when a path to remove is not a member of the directory.
    """


class DirectoryNotFoundError(DriveException):
    """
    Raised when an address has no directory record.
    """


class PrimitiveUnavailableError(DriveException):
    """
    Raised when the encryption primitive is not ready after polling.
    """
    hint = RETRY_HINT


class MetadataRelayError(DriveException):
    """
    Raised when the metadata relay answers with an error status.
    """
