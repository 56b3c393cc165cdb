from __future__ import annotations
from enum import Enum
from typing import Optional

from corelink.protocol.phases import Step


class CoreLinkError(Exception):
    pass


class KeyLoadError(CoreLinkError):
    """Own key material could not be read. The process cannot continue."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot load key from {path}: {reason}")
        self.path = path


class ConfigError(CoreLinkError):
    pass


class CryptoError(CoreLinkError):
    pass


class InvalidKeyError(CryptoError):
    pass


class PayloadTooLargeError(CryptoError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"payload of {size} bytes exceeds RSA block limit of {limit} bytes")
        self.size = size
        self.limit = limit


class DecryptionError(CryptoError):
    pass


class TransportError(CoreLinkError):
    def __init__(self, operation: str, reason: str, status_code: Optional[int] = None):
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.status_code = status_code


class ProtocolError(CoreLinkError):
    pass


class HandshakePreconditionError(ProtocolError):
    pass


class HandshakeErrorKind(str, Enum):
    NO_REMOTE_KEY = "no_remote_key"
    NETWORK_FAILURE = "network_failure"
    CHALLENGE_MISMATCH = "challenge_mismatch"
    FINALIZATION_FAILURE = "finalization_failure"


class HandshakeError(ProtocolError):
    """
    A handshake phase failed. The session is dead; recovery means starting a
    new session from key exchange.
    """

    def __init__(self, kind: HandshakeErrorKind, step: Step, reason: str):
        super().__init__(f"{kind.value} during {step.value}: {reason}")
        self.kind = kind
        self.step = step
        self.reason = reason
