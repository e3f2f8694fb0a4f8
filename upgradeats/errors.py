class GatewayError(Exception):
    """Raised by a gateway when the data or auth service rejects a call."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(GatewayError):
    def __init__(self, message: str, bad_credentials: bool = False):
        super().__init__(message)
        self.bad_credentials = bad_credentials


class GatewayTimeout(GatewayError):
    pass


class TransitionError(Exception):
    """An order status change that the lifecycle does not allow."""
