from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import structlog
from pydantic import ValidationError

from corelink.crypto.cipher import (
    AsymmetricCipher, load_private_key, load_public_key, max_plaintext_size, random_string,
)
from corelink.crypto.keys import KeyPair
from corelink.crypto.primitives import safe_compare
from corelink.protocol.constants import (
    NONCE_LENGTH, OP_EXEC, OP_FINALIZE, OP_KEY_EXCHANGE, OP_VERIFY,
)
from corelink.protocol.messages import (
    CommandRequest, FinalizeRequest, FinalizeResponse, KeyExchangeRequest,
    KeyExchangeResponse, VerifyRequest, VerifyResponse,
)
from corelink.protocol.phases import Phase, Step
from corelink.protocol.validation import fuzz_resistant_json_loads

from .errors import (
    CryptoError, HandshakeError, HandshakeErrorKind, HandshakePreconditionError,
    InvalidKeyError, TransportError,
)
from .state import HandshakeSession
from .transport import Transport, TransportResponse

logger = structlog.get_logger()


class SecureChannel:
    """Trusted channel handed out once the handshake is finalized."""

    def __init__(self, cipher: AsymmetricCipher, transport: Transport):
        self._cipher = cipher
        self._transport = transport

    @property
    def correlation_id(self) -> Optional[str]:
        return self._transport.get_correlation_id()

    def encrypt_for_remote(self, plaintext: str | bytes) -> str:
        return self._cipher.encrypt_for_remote(plaintext)

    def decrypt_own(self, ciphertext_b64: str) -> bytes:
        return self._cipher.decrypt_bytes(ciphertext_b64)

    def send_command(self, command: str, operation: str = OP_EXEC) -> str:
        # Single RSA block only; PayloadTooLargeError propagates for long commands.
        req = CommandRequest(encrypted_command=self.encrypt_for_remote(command))
        resp = self._transport.send(operation, req.to_wire())
        logger.info("command_sent", operation=operation)
        return resp.body


@dataclass(frozen=True)
class HandshakeResult:
    ok: bool
    phase: Phase
    step: Optional[Step] = None
    error_kind: Optional[HandshakeErrorKind] = None
    detail: Optional[str] = None
    channel: Optional[SecureChannel] = None

    @property
    def network_failure(self) -> bool:
        return self.error_kind is HandshakeErrorKind.NETWORK_FAILURE


class HandshakeProtocol:
    """
    Three-phase mutual proof-of-possession with the core.

    1. key exchange: send our public key, learn the core's key and, if the core
       issues one, the correlation id.
    2. verify: send a fresh nonce under the core's key; the core must echo it
       back under ours, plus a challenge of its own.
    3. finalize: return the core's challenge under the core's key.

    Phases run strictly in order. Any failure kills the session; retrying means
    building a new HandshakeProtocol.
    """

    def __init__(self, transport: Transport, key_pair: KeyPair, logger=None):
        self._private_key = load_private_key(key_pair.private_key)
        self.transport = transport
        # a new session never inherits an id issued to an earlier one
        self.transport.clear_correlation_id()
        self.session = HandshakeSession(own_key_pair=key_pair)
        self.logger = logger if logger is not None else structlog.get_logger()

    @property
    def phase(self) -> Phase:
        return self.session.phase

    def _require_phase(self, expected: Phase, step: Step):
        if self.session.phase is not expected:
            raise HandshakePreconditionError(
                f"{step.value} requires phase {expected.name}, session is {self.session.phase.name}"
            )

    def _fail(self, kind: HandshakeErrorKind, step: Step, reason: str) -> HandshakeError:
        self.session.fail()
        self.logger.error("handshake_failed", step=step.value, kind=kind.value, reason=reason)
        return HandshakeError(kind, step, reason)

    def _exchange(self, step: Step, operation: str, body: dict, kind: HandshakeErrorKind) -> TransportResponse:
        try:
            return self.transport.send(operation, body)
        except TransportError as e:
            raise self._fail(kind, step, str(e)) from e

    def key_exchange(self):
        step = Step.KEY_EXCHANGE
        self._require_phase(Phase.UNSTARTED, step)
        own_public = self.session.own_key_pair.public_key

        req = KeyExchangeRequest(client_public_key=own_public)
        resp = self._exchange(step, OP_KEY_EXCHANGE, req.to_wire(), HandshakeErrorKind.NETWORK_FAILURE)

        try:
            parsed = KeyExchangeResponse.model_validate(fuzz_resistant_json_loads(resp.body))
        except (ValueError, ValidationError) as e:
            raise self._fail(HandshakeErrorKind.NO_REMOTE_KEY, step, "response carries no remote public key") from e

        remote_pem = parsed.remote_public_key
        try:
            if max_plaintext_size(load_public_key(remote_pem)) < NONCE_LENGTH:
                raise InvalidKeyError("remote key too small to carry a nonce")
        except InvalidKeyError as e:
            raise self._fail(HandshakeErrorKind.NO_REMOTE_KEY, step, str(e)) from e

        correlation_id = resp.header(self.transport.correlation_header)
        if correlation_id:
            self.transport.set_correlation_id(correlation_id)
            self.session.correlation_id = correlation_id

        self.session.set_remote_key(remote_pem)
        self.session.cipher = AsymmetricCipher(self.session.own_key_pair, remote_pem, private_key=self._private_key)
        self.session.phase = Phase.KEY_EXCHANGED
        self.logger.info("key_exchange_complete", correlated=correlation_id is not None)

    def verify(self) -> str:
        step = Step.VERIFY
        self._require_phase(Phase.KEY_EXCHANGED, step)
        cipher = self.session.cipher
        if cipher is None or self.session.remote_public_key is None:
            raise HandshakePreconditionError("verify requires a completed key exchange")

        self.session.nonce = random_string(NONCE_LENGTH)
        try:
            try:
                req = VerifyRequest(encrypted_nonce=cipher.encrypt_for_remote(self.session.nonce))
            except CryptoError as e:
                raise self._fail(HandshakeErrorKind.CHALLENGE_MISMATCH, step, str(e)) from e

            resp = self._exchange(step, OP_VERIFY, req.to_wire(), HandshakeErrorKind.NETWORK_FAILURE)

            try:
                parsed = VerifyResponse.model_validate(fuzz_resistant_json_loads(resp.body))
                echo = cipher.decrypt(parsed.encrypted_echo)
                challenge = cipher.decrypt(parsed.encrypted_challenge)
            except (ValueError, ValidationError) as e:
                raise self._fail(HandshakeErrorKind.CHALLENGE_MISMATCH, step, "malformed verification response") from e
            except CryptoError as e:
                raise self._fail(HandshakeErrorKind.CHALLENGE_MISMATCH, step, str(e)) from e

            if not safe_compare(echo, self.session.nonce):
                self.logger.warning("challenge_mismatch")
                raise self._fail(HandshakeErrorKind.CHALLENGE_MISMATCH, step,
                                 "remote echo does not match the nonce sent")
        finally:
            self.session.nonce = None

        self.session.phase = Phase.VERIFIED
        self.logger.info("remote_verified")
        return challenge

    def finalize(self, challenge: str) -> str:
        step = Step.FINALIZE
        self._require_phase(Phase.VERIFIED, step)
        cipher = self.session.cipher

        try:
            req = FinalizeRequest(encrypted_challenge_response=cipher.encrypt_for_remote(challenge))
        except CryptoError as e:
            raise self._fail(HandshakeErrorKind.FINALIZATION_FAILURE, step, str(e)) from e

        resp = self._exchange(step, OP_FINALIZE, req.to_wire(), HandshakeErrorKind.FINALIZATION_FAILURE)

        try:
            parsed = FinalizeResponse.model_validate(fuzz_resistant_json_loads(resp.body)) if resp.body.strip() \
                else FinalizeResponse()
        except (ValueError, ValidationError) as e:
            raise self._fail(HandshakeErrorKind.FINALIZATION_FAILURE, step, "malformed finalization response") from e

        self.session.phase = Phase.FINALIZED
        status = "" if parsed.status is None else str(parsed.status)
        self.logger.info("handshake_finalized", status=status)
        return status

    def channel(self) -> SecureChannel:
        if self.session.phase is not Phase.FINALIZED or self.session.cipher is None:
            raise HandshakePreconditionError("secure channel is only available after finalization")
        return SecureChannel(self.session.cipher, self.transport)

    def run(self) -> HandshakeResult:
        try:
            self.key_exchange()
            challenge = self.verify()
            self.finalize(challenge)
        except HandshakeError as e:
            return HandshakeResult(ok=False, phase=self.session.phase, step=e.step,
                                   error_kind=e.kind, detail=str(e))
        return HandshakeResult(ok=True, phase=self.session.phase, channel=self.channel())

    def abort(self):
        if self.session.phase is not Phase.FAILED:
            self.logger.info("handshake_aborted", phase=self.session.phase.name)
        self.session.cleanup()
        self.transport.close()
