from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

EXIT_OK = 0
EXIT_HANDSHAKE_FAILED = 1
EXIT_SETUP_FAILED = 2


def configure_logging(verbose: bool = False):
    import structlog
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
    )


def security_self_check() -> bool:
    import structlog
    from corelink.crypto.cipher import AsymmetricCipher, random_string
    from corelink.crypto.keys import generate_key_pair
    from corelink.crypto.primitives import b64d
    from corelink.util.deps import check_dependencies

    logger = structlog.get_logger()
    checks = []

    deps_ok, missing = check_dependencies()
    checks.append(("Dependencies", deps_ok))
    checks.append(("Python >= 3.10", sys.version_info >= (3, 10)))

    try:
        nonces = {random_string() for _ in range(100)}
        checks.append(("Random source", len(nonces) == 100))
    except Exception:
        checks.append(("Random source", False))

    try:
        b64d("aW52YWxpZCBwYWRkaW5n")
        checks.append(("Base64 strict decode (valid)", True))
    except ValueError:
        checks.append(("Base64 strict decode (valid)", False))

    try:
        b64d("invalid!@#$")
        checks.append(("Base64 strict decode (invalid)", False))
    except ValueError:
        checks.append(("Base64 strict decode (invalid)", True))

    try:
        kp = generate_key_pair()
        cipher = AsymmetricCipher(kp)
        sample = random_string()
        checks.append(("RSA PKCS#1 v1.5 round-trip", cipher.decrypt(cipher.encrypt(kp.public_key, sample)) == sample))
    except Exception:
        checks.append(("RSA PKCS#1 v1.5 round-trip", False))

    all_ok = all(ok for _, ok in checks)
    for name, ok in checks:
        (logger.info if ok else logger.error)("security_check", check=name, status=("OK" if ok else "FAILED"))
    if missing:
        logger.error("missing_dependencies", packages=missing)
    return all_ok


def cmd_handshake(args) -> int:
    import structlog
    from corelink.client.errors import ConfigError, InvalidKeyError, KeyLoadError
    from corelink.client.handshake import HandshakeProtocol
    from corelink.client.transport import Transport
    from corelink.config import load_config
    from corelink.crypto.keys import load_key_pair

    logger = structlog.get_logger()
    transport = None
    try:
        cfg = load_config(args.config)
        server = cfg.server
        key_pair = load_key_pair(server.public_key_path, server.private_key_path)
        transport = Transport(
            hostname=args.host or server.hostname,
            port=args.port or server.port,
            verify=args.verify or server.verify_tls,
            timeout=args.timeout or server.timeout,
        )
        protocol = HandshakeProtocol(transport, key_pair)
    except (ConfigError, KeyLoadError, InvalidKeyError) as e:
        if transport is not None:
            transport.close()
        logger.error("setup_failed", error=str(e))
        print(f"Setup error: {e}", file=sys.stderr)
        return EXIT_SETUP_FAILED

    try:
        result = protocol.run()
    except KeyboardInterrupt:
        protocol.abort()
        logger.info("client_shutdown", reason="keyboard_interrupt")
        print("\nHandshake aborted")
        return EXIT_HANDSHAKE_FAILED

    if not result.ok:
        transport.close()
        cause = "core unreachable" if result.network_failure else "peer failed proof-of-possession"
        print(f"Handshake failed ({cause}): {result.detail}", file=sys.stderr)
        return EXIT_HANDSHAKE_FAILED

    print(f"Handshake finalized with {transport.base_url}"
          + (f" (correlation id {result.channel.correlation_id})" if result.channel.correlation_id else ""))
    transport.close()
    return EXIT_OK


def cmd_gen_keys(args) -> int:
    from corelink.crypto.keys import generate_key_pair, write_key_pair

    pub, priv = write_key_pair(generate_key_pair(args.bits), args.out, args.name)
    print(f"Public:  {pub}")
    print(f"Private: {priv}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="corelink", description="Mutual key handshake with a remote core")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    hs = subparsers.add_parser("handshake", help="Run the three-phase handshake")
    hs.add_argument("--config", required=True, help="JSON config file")
    hs.add_argument("--host", help="override server.hostname")
    hs.add_argument("--port", type=int, help="override server.port")
    hs.add_argument("--verify", action="store_true", help="verify the core's TLS certificate")
    hs.add_argument("--timeout", type=float, help="per-request timeout in seconds")

    gk = subparsers.add_parser("gen-keys", help="Generate an RSA key pair")
    gk.add_argument("--out", required=True, help="output directory")
    gk.add_argument("--bits", type=int, default=2048, choices=[2048, 3072, 4096])
    gk.add_argument("--name", default="client", help="file name prefix")

    subparsers.add_parser("check", help="Run security self-check")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    from corelink.util.deps import check_dependencies

    ok, missing = check_dependencies()
    if not ok:
        print("ERROR: Missing dependencies:")
        for dep in missing:
            print(f"  - {dep}")
        print(f"\nInstall with:\npip install {' '.join(missing)}")
        return EXIT_SETUP_FAILED

    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "check":
        if not security_self_check():
            print("Security self-check failed", file=sys.stderr)
            return EXIT_SETUP_FAILED
        print("✓ Security self-check passed")
        return EXIT_OK
    if args.command == "gen-keys":
        return cmd_gen_keys(args)
    return cmd_handshake(args)


if __name__ == "__main__":
    sys.exit(main())
