"""
FSR Error Handling

Exception classes for the FSR control plane. Malformed network input is
reported through DecodeError; everything else here is fatal at startup.
"""

from typing import Optional


class FSRError(Exception):
    """Base exception for FSR errors"""
    pass


class DecodeError(FSRError):
    """Truncated or malformed FSR packet"""

    def __init__(self, reason: str, length: Optional[int] = None):
        """
        Initialize decode error

        Args:
            reason: What was wrong with the buffer
            length: Length of the offending buffer, if known
        """
        self.reason = reason
        self.length = length

        message = f"FSR decode error: {reason}"
        if length is not None:
            message += f" (buffer length={length})"

        super().__init__(message)


class ConfigurationError(FSRError):
    """Invalid protocol configuration"""
    pass


class CollaboratorError(FSRError):
    """A mandatory collaborator (transport, routing sink, scheduler) is missing"""

    def __init__(self, collaborator: str):
        self.collaborator = collaborator
        super().__init__(f"FSR cannot run without a {collaborator}")
