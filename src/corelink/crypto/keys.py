from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path

from corelink.client.errors import KeyLoadError
from corelink.protocol.constants import RSA_DEFAULT_BITS


def require_crypto():
    try:
        from cryptography.hazmat.primitives.asymmetric import rsa
        from cryptography.hazmat.primitives import serialization
        return rsa, serialization
    except ImportError as e:
        raise RuntimeError("Missing dependency 'cryptography'") from e


@dataclass(frozen=True)
class KeyPair:
    public_key: str
    private_key: str = field(repr=False)


def load_key_file(path: str | Path) -> str:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise KeyLoadError(str(p), type(e).__name__) from e
    if "-----BEGIN " not in text:
        raise KeyLoadError(str(p), "no PEM block found")
    return text


def load_key_pair(public_path: str | Path, private_path: str | Path) -> KeyPair:
    return KeyPair(public_key=load_key_file(public_path), private_key=load_key_file(private_path))


def generate_key_pair(bits: int = RSA_DEFAULT_BITS) -> KeyPair:
    rsa, serialization = require_crypto()
    priv = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    priv_pem = priv.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub_pem = priv.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return KeyPair(public_key=pub_pem.decode("ascii"), private_key=priv_pem.decode("ascii"))


def write_key_pair(key_pair: KeyPair, out_dir: str | Path, prefix: str = "client") -> tuple[Path, Path]:
    d = Path(out_dir)
    d.mkdir(parents=True, exist_ok=True)
    pub = d / f"{prefix}_public.pem"
    priv = d / f"{prefix}_private.pem"
    pub.write_text(key_pair.public_key, encoding="ascii")
    priv.write_text(key_pair.private_key, encoding="ascii")
    priv.chmod(0o600)
    return pub, priv
