class OrderError(Exception):
    """Base for rejections that reach the client with a JSON body."""
    status_code = 400

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_body(self) -> dict:
        return {"error": self.message, **self.extra}


class ItemResolutionError(OrderError):
    status_code = 400


class OrderBlockedError(OrderError):
    status_code = 429

    def __init__(self, message: str, error_code: str, **extra):
        super().__init__(message, errorCode=error_code, **extra)
        self.error_code = error_code
