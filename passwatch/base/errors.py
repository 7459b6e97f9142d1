class PasswatchError(Exception):
    def __init__(self, message="passwatch error"):
        self.message = message
        super().__init__(self.message)


class ParseError(PasswatchError):
    """Malformed orbital element record."""

    def __init__(self, message="Orbital element record is malformed"):
        super().__init__(message)


class FetchError(PasswatchError):
    """Network failure, timeout, non-success status or provider error body."""

    def __init__(self, message="Upstream request failed", status: int | None = None):
        self.status = status
        super().__init__(message)


class CredentialMissing(PasswatchError):
    def __init__(self, message="Upstream API credential is missing"):
        super().__init__(message)
