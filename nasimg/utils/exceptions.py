class ServiceError(Exception):
    """Base exception for all service-layer errors."""

    def __init__(self, detail: str, status_code: int = 500):
        self.detail = detail
        self.status_code = status_code
        super().__init__(self.detail)


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail, status_code=404)


class NoIndexedDirectoriesError(NotFoundError):
    """Raised when the directory index is empty or not yet published."""

    def __init__(self, detail: str = "No directories with images found"):
        super().__init__(detail)


class NoImagesInDirectoryError(NotFoundError):
    """Raised when an indexed directory no longer holds any image."""

    def __init__(self, detail: str = "No images found in selected directory"):
        super().__init__(detail)


class DirectoryListFailedError(ServiceError):
    """Raised when the chosen directory cannot be listed at request time."""

    def __init__(self, detail: str = "Failed to read directory"):
        super().__init__(detail, status_code=500)


class ImageReadFailedError(ServiceError):
    """Raised when the chosen image cannot be opened or read."""

    def __init__(self, detail: str = "Failed to read image file"):
        super().__init__(detail, status_code=500)


class RemoteFSError(Exception):
    """Raised by a remote tree accessor for any transport or protocol failure."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
