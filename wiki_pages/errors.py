class WikiError(Exception):
    """Base class for errors raised while serving wiki requests."""

    status_code = 500


class NotFound(WikiError):
    status_code = 404


class MethodNotAllowed(WikiError):
    status_code = 405

    def __init__(self, method: str, allowed: tuple[str, ...] = ("GET", "PUT")):
        super().__init__(f"Method {method} not allowed")
        self.method = method
        self.allowed = allowed


class EncodingError(WikiError):
    """Invalid percent-encoding in the path or a request body that is not UTF-8."""

    status_code = 400


class StorageError(WikiError):
    """Any failure of the underlying database. Never shown to the client."""

    status_code = 500
