"""Typed failures raised by the services and rendered by the API layer.

Every error carries a stable ``code`` (the kind name surfaced to clients), an
HTTP status, a human message naming the rule that was violated, and optional
structured ``detail``.
"""
from typing import Any


class CutroomError(Exception):
    code = "Error"
    status_code = 400

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "detail": self.detail}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class NotFound(CutroomError):
    code = "NotFound"
    status_code = 404


class Unauthorized(CutroomError):
    code = "Unauthorized"
    status_code = 403


class ValidationFailed(CutroomError):
    code = "ValidationFailed"
    status_code = 422


# ---- Round sequencing ----

class OutOfOrder(CutroomError):
    code = "OutOfOrder"
    status_code = 409


class LaterStepsIncomplete(CutroomError):
    code = "LaterStepsIncomplete"
    status_code = 409


class RoundClosed(CutroomError):
    code = "RoundClosed"
    status_code = 409


class AlreadyDecided(RoundClosed):
    code = "AlreadyDecided"


class MissingDeliverable(CutroomError):
    code = "MissingDeliverable"
    status_code = 422


# ---- Media ----

class QuotaExceeded(CutroomError):
    code = "QuotaExceeded"
    status_code = 409

    def __init__(self, shortfall_bytes: int, *, requested_bytes: int, remaining_bytes: int):
        super().__init__(
            f"Storage quota exceeded: upload needs {requested_bytes} bytes but only "
            f"{remaining_bytes} remain ({shortfall_bytes} bytes short)",
            shortfall_bytes=shortfall_bytes,
            requested_bytes=requested_bytes,
            remaining_bytes=remaining_bytes,
        )
        self.shortfall_bytes = shortfall_bytes


class FileTooLarge(CutroomError):
    code = "FileTooLarge"
    status_code = 413


class InvalidFileType(CutroomError):
    code = "InvalidFileType"
    status_code = 415


class InvalidMerge(CutroomError):
    code = "InvalidMerge"
    status_code = 409


class FolderConflict(CutroomError):
    code = "FolderConflict"
    status_code = 409


# ---- Comments ----

class EmptyComment(CutroomError):
    code = "EmptyComment"
    status_code = 422


class TooManyImages(CutroomError):
    code = "TooManyImages"
    status_code = 422


# ---- Review links ----

class LinkDenied(CutroomError):
    code = "LinkDenied"

    NOT_FOUND = "NotFound"
    INACTIVE = "Inactive"
    EXPIRED = "Expired"
    PASSWORD_REQUIRED = "PasswordRequired"
    WRONG_PASSWORD = "WrongPassword"

    _messages = {
        NOT_FOUND: "Review link not found",
        INACTIVE: "This review link has been deactivated",
        EXPIRED: "This review link has expired",
        PASSWORD_REQUIRED: "This review link is password protected",
        WRONG_PASSWORD: "Incorrect password for this review link",
    }
    _statuses = {
        NOT_FOUND: 404,
        INACTIVE: 410,
        EXPIRED: 410,
        PASSWORD_REQUIRED: 401,
        WRONG_PASSWORD: 401,
    }

    def __init__(self, reason: str):
        super().__init__(self._messages[reason], reason=reason)
        self.reason = reason
        self.status_code = self._statuses[reason]
