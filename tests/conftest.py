from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from corelink.client.handshake import HandshakeProtocol
from corelink.client.transport import Transport
from corelink.crypto.cipher import AsymmetricCipher
from corelink.crypto.keys import generate_key_pair
from corelink.protocol.constants import OP_EXEC, OP_FINALIZE, OP_KEY_EXCHANGE, OP_VERIFY


@pytest.fixture(scope="session")
def client_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def remote_keys():
    return generate_key_pair()


@dataclass
class FakeResponse:
    status_code: int = 200
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class Call:
    operation: str
    body: Dict[str, Any]
    headers: CaseInsensitiveDict
    verify: Any
    timeout: Any


class FakeCore:
    """
    In-process stand-in for the remote core. Plugs into Transport as its
    HTTP session and answers the handshake operations with real RSA.
    """

    def __init__(self, key_pair, correlation_id: Optional[str] = "abc123", secret: str = "xyz"):
        self.key_pair = key_pair
        self.cipher = AsymmetricCipher(key_pair)
        self.correlation_id = correlation_id
        self.secret = secret
        self.calls: List[Call] = []
        self.client_public_key: Optional[str] = None
        self.received_nonce: Optional[str] = None
        self.received_challenge_response: Optional[str] = None
        self.received_command: Optional[str] = None

        # fault injection
        self.omit_remote_key = False
        self.echo_override: Optional[str] = None
        self.echo_transform = None
        self.network_down_on: set = set()
        self.http_error_on: Dict[str, int] = {}
        self.raw_body_on: Dict[str, str] = {}
        self.finalize_status: Any = "ok"
        self.closed = False

    def operations(self) -> List[str]:
        return [c.operation for c in self.calls]

    def post(self, url, data=None, headers=None, verify=None, timeout=None):
        op = urlsplit(url).path
        body = json.loads(data)
        self.calls.append(Call(op, body, CaseInsensitiveDict(headers or {}), verify, timeout))

        if op in self.network_down_on:
            raise requests.ConnectionError("connection refused")
        if op in self.http_error_on:
            return FakeResponse(status_code=self.http_error_on[op], text="{}")
        if op in self.raw_body_on:
            return FakeResponse(text=self.raw_body_on[op])

        if op == OP_KEY_EXCHANGE:
            self.client_public_key = body["clientPublicKey"]
            payload = {} if self.omit_remote_key else {"remotePublicKey": self.key_pair.public_key}
            hdrs = {"x-correlation-id": self.correlation_id} if self.correlation_id else {}
            return FakeResponse(text=json.dumps(payload), headers=hdrs)

        if op == OP_VERIFY:
            self.received_nonce = self.cipher.decrypt(body["encryptedNonce"])
            echo = self.received_nonce if self.echo_override is None else self.echo_override
            if self.echo_transform is not None:
                echo = self.echo_transform(echo)
            payload = {
                "encryptedEcho": self.cipher.encrypt(self.client_public_key, echo),
                "encryptedChallenge": self.cipher.encrypt(self.client_public_key, self.secret),
            }
            return FakeResponse(text=json.dumps(payload))

        if op == OP_FINALIZE:
            self.received_challenge_response = self.cipher.decrypt(body["encryptedChallengeResponse"])
            if self.received_challenge_response != self.secret:
                return FakeResponse(status_code=403, text=json.dumps({"error": "bad secret"}))
            return FakeResponse(text=json.dumps({"status": self.finalize_status}))

        if op == OP_EXEC:
            self.received_command = self.cipher.decrypt(body["encryptedCommand"])
            return FakeResponse(text=json.dumps({"result": "accepted"}))

        return FakeResponse(status_code=404, text="{}")

    def close(self):
        self.closed = True


@pytest.fixture
def core(remote_keys):
    return FakeCore(remote_keys)


@pytest.fixture
def transport(core):
    return Transport("core.local", 8443, http=core)


@pytest.fixture
def protocol(transport, client_keys):
    return HandshakeProtocol(transport, client_keys)
