from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from corelink.crypto.cipher import AsymmetricCipher
from corelink.crypto.keys import KeyPair
from corelink.protocol.phases import Phase
from .errors import ProtocolError

@dataclass
class HandshakeSession:
    own_key_pair: KeyPair = field(repr=False)
    remote_public_key: Optional[str] = field(default=None, repr=False)
    correlation_id: Optional[str] = None
    phase: Phase = Phase.UNSTARTED
    cipher: Optional[AsymmetricCipher] = field(default=None, repr=False)
    nonce: Optional[str] = field(default=None, repr=False)

    def set_remote_key(self, pem: str):
        if self.remote_public_key is not None:
            raise ProtocolError("remote public key already set for this session")
        self.remote_public_key = pem

    def fail(self):
        self.nonce = None
        self.phase = Phase.FAILED

    def cleanup(self):
        for field_name in ['nonce', 'cipher', 'remote_public_key']:
            setattr(self, field_name, None)
        self.phase = Phase.FAILED
