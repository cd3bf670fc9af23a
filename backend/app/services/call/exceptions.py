"""
Call Service Exceptions

Domain errors reported to the originating connection as ``call-error``.
Each carries the stable ``code`` used on the wire.
"""


class CallServiceError(Exception):
    """Base exception for call service errors"""
    code = "CallServiceError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class TargetUnavailableError(CallServiceError):
    """Target user is not registered or offline"""
    code = "TargetUnavailable"


class TargetBusyError(CallServiceError):
    """Target user is already in an active call"""
    code = "TargetBusy"


class CallNotFoundError(CallServiceError):
    """Call is not found"""
    code = "CallNotFound"


class InvalidStateError(CallServiceError):
    """Operation is not valid for the call's current status"""
    code = "InvalidState"


class NotAuthorizedError(CallServiceError):
    """Actor is not allowed to perform this operation"""
    code = "NotAuthorized"
