from __future__ import annotations
from enum import Enum, auto


class Phase(Enum):
    UNSTARTED = auto()
    KEY_EXCHANGED = auto()
    VERIFIED = auto()
    FINALIZED = auto()
    FAILED = auto()


class Step(str, Enum):
    KEY_EXCHANGE = "key_exchange"
    VERIFY = "verify"
    FINALIZE = "finalize"
