"""Custom exception classes for the image store."""


class ImageVaultException(Exception):
    """
    Base exception class for all image store errors.
    """
    pass


class ValidationError(ImageVaultException):
    """
    Raised when an upload request is malformed or carries no files.
    """
    pass


class ObjectNotFoundError(ImageVaultException):
    """
    Raised when no metadata exists for a requested object id.
    """
    pass


class IncompleteObjectError(ImageVaultException):
    """
    Raised when an object exists but its chunks are still being written.
    """
    pass


class IntegrityError(ImageVaultException):
    """
    Raised when chunk data does not reconstruct the object its metadata describes.
    """
    pass


class StorageError(ImageVaultException):
    """
    Raised when the backing key-value store fails.
    """
    pass


class ValueTooLargeError(StorageError):
    """
    Raised when a value exceeds the key-value store's per-value size limit.
    """
    pass
