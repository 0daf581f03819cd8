"""Exceções do domínio, convertidas em respostas HTTP por main.py."""


class TrackstarError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class Unauthenticated(TrackstarError):
    status_code = 401


class Forbidden(TrackstarError):
    status_code = 403


class NotFound(TrackstarError):
    status_code = 404


class InvalidInput(TrackstarError):
    status_code = 400


class Conflict(TrackstarError):
    status_code = 400


class Internal(TrackstarError):
    status_code = 500
