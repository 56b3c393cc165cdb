from __future__ import annotations

OP_KEY_EXCHANGE = "/api/key-exchange"
OP_VERIFY = "/api/verify-message"
OP_FINALIZE = "/api/handshake-success"
OP_EXEC = "/api/exec"

CORRELATION_HEADER = "X-Correlation-Id"

DEFAULT_HOSTNAME = "localhost"
DEFAULT_PORT = 8443

NONCE_LENGTH = 64
RSA_DEFAULT_BITS = 2048
# PKCS#1 v1.5 padding overhead per RSA block
PKCS1V15_OVERHEAD = 11

MAX_MSG_BYTES = 64 * 1024
MAX_JSON_DEPTH = 10
MAX_JSON_KEYS = 100
MAX_B64_LENGTH = 64 * 1024
