"""
Error taxonomy shared by the session registry, the fetch bridge and both
transports.
"""
from typing import Optional


class BrowserHostError(Exception):
    """Base exception for browserhost operations"""
    status_code = 500

    def __init__(self, message: str = "", session_id: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.__class__.__name__
        self.session_id = session_id
        super().__init__(self.message)


class SessionNotFound(BrowserHostError):
    """Session not found"""
    status_code = 404


class BadRequest(BrowserHostError):
    """Malformed or missing required field"""
    status_code = 400


class EngineUnavailable(BrowserHostError):
    """Browser engine could not be started"""
    status_code = 503


class OperationFailed(BrowserHostError):
    """Browser operation failed"""
    status_code = 500


class ShutdownInProgress(BrowserHostError):
    """Daemon is shutting down"""
    status_code = 503
