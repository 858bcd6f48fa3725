from fastapi import status
from fastapi.responses import JSONResponse
from app.enums import ErrorCode


class ApplicationException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        code: ErrorCode = ErrorCode.INVALID_INPUT,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def to_response(self):
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.message, "code": self.code.value}
        )


class InvalidInputError(ApplicationException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, ErrorCode.INVALID_INPUT)


class DeviceIdMismatchError(ApplicationException):
    def __init__(self, message: str = "Device ID mismatch: deviceId in request does not match authenticated device"):
        super().__init__(message, status.HTTP_403_FORBIDDEN, ErrorCode.DEVICE_ID_MISMATCH)


class NotFoundError(ApplicationException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND)


class RangeViolationError(ApplicationException):
    """Raised by the storage models when a vital sign or config value is out of bounds."""

    def __init__(self, field: str, value, minimum, maximum):
        self.field = field
        self.value = value
        super().__init__(
            f"{field} must be between {minimum} and {maximum}, got {value}",
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.RANGE_VIOLATION,
        )


class UpstreamFailureError(ApplicationException):
    def __init__(self, message: str = "Query failed"):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, ErrorCode.UPSTREAM_FAILURE)


class UnauthorizedError(ApplicationException):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, ErrorCode.UNAUTHORIZED)
