# relay/errors.py
# Errors that end a request. Each one knows the status it maps to.


class RelayError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message}


class InvalidInput(RelayError):
    """Missing or malformed target URL."""
    status_code = 400


class UpstreamUnreachable(RelayError):
    """DNS failure, refused connection, timeout or redirect loop."""
    status_code = 500


class ConfigMissing(RelayError):
    status_code = 500


class ConfigInvalid(RelayError):
    status_code = 500


class MethodNotAllowed(RelayError):
    status_code = 405
