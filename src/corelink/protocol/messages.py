"""
Wire models for the three handshake exchanges.

Field names on the wire are camelCase; Python attributes are snake_case.
Every ``encrypted_*`` field carries base64 RSA/PKCS#1 v1.5 ciphertext.
"""
from __future__ import annotations
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class KeyExchangeRequest(WireModel):
    client_public_key: str = Field(alias="clientPublicKey", min_length=1)


class KeyExchangeResponse(WireModel):
    remote_public_key: str = Field(alias="remotePublicKey", min_length=1)


class VerifyRequest(WireModel):
    encrypted_nonce: str = Field(alias="encryptedNonce", min_length=1)


class VerifyResponse(WireModel):
    encrypted_echo: str = Field(alias="encryptedEcho", min_length=1)
    encrypted_challenge: str = Field(alias="encryptedChallenge", min_length=1)


class FinalizeRequest(WireModel):
    encrypted_challenge_response: str = Field(alias="encryptedChallengeResponse", min_length=1)


class FinalizeResponse(WireModel):
    status: Any = None


class CommandRequest(WireModel):
    encrypted_command: str = Field(alias="encryptedCommand", min_length=1)
