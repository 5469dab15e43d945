class FileServiceError(Exception):
    """Base exception for everything the file service surfaces over HTTP"""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    @property
    def message(self):
        return str(self)


class InternalError(FileServiceError):
    """Catch-all for failures that have no more specific class"""
    pass


class AuthError(FileServiceError):
    """Raised when a token cannot be authenticated"""
    status_code = 400
    default_message = "Invalid digit"


class InvalidSignature(AuthError):
    """Raised when the digit does not match the decrypted descriptor"""
    pass


class MalformedDescriptor(FileServiceError):
    """Raised when a descriptor is missing fields or has wrong types"""
    status_code = 400
    default_message = "Malformed content descriptor"


class InvalidExpiry(FileServiceError):
    """Raised when expiredAt is not numeric"""
    status_code = 400
    default_message = "Invalid expiredAt format"


class TokenExpired(FileServiceError):
    """Raised when the token is past its expiredAt"""
    status_code = 400
    default_message = "Token expired"


class UnsupportedImageType(FileServiceError):
    """Raised when the obfuscator is given a MIME type it cannot handle"""
    status_code = 400
    default_message = "Unsupported image type"


class ImageDecodeFailed(FileServiceError):
    """Raised when image bytes cannot be decoded"""
    status_code = 400
    default_message = "Failed to decode image"


class ImageEncodeFailed(FileServiceError):
    """Raised when a transformed image cannot be re-encoded"""
    status_code = 500
    default_message = "Failed to encode image"


class UpstreamError(FileServiceError):
    """
    Raised when the storage platform answers with an error or cannot be reached.
    Carries the upstream HTTP status and reason when there was a response.
    """
    status_code = 502
    default_message = "Upstream storage error"

    def __init__(self, message=None, status=None, reason=None):
        super().__init__(message or reason)
        self.status = status
        self.reason = reason or self.message
        if status and 400 <= status <= 599:
            self.status_code = status


class StorageUploadError(UpstreamError):
    """Raised when chunk upload fails"""
    pass


class StorageDownloadError(UpstreamError):
    """Raised when chunk download fails"""
    pass


class SegmentError(FileServiceError):
    """Base class for failures tied to one segment of a segmented transfer"""
    status_code = 502
    action = "transfer"

    def __init__(self, index, cause=None):
        self.index = index
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Failed to {self.action} segment {index}{detail}")
        if isinstance(cause, UpstreamError):
            self.status_code = cause.status_code


class SegmentUploadFailed(SegmentError):
    """Raised when one segment of a segmented upload fails"""
    action = "upload"


class SegmentFetchFailed(SegmentError):
    """Raised when one segment of a segmented download fails"""
    action = "fetch"
