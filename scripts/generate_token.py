#!/usr/bin/env python3
"""
Generate bearer tokens for the service endpoints.

Usage:
    python scripts/generate_token.py              # one 32-byte token
    python scripts/generate_token.py --length 48
    python scripts/generate_token.py --env        # ADMIN/METRICS/EMAIL_RELAY lines for .env
"""
import argparse

from fundiflow_notify.transport.security import generate_secure_token, validate_token_strength

ENV_NAMES = ("ADMIN_TOKEN", "METRICS_TOKEN", "EMAIL_RELAY_TOKEN")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Generate random bearer tokens.")
    parser.add_argument("--length", type=int, default=32, help="bytes of randomness (default: 32)")
    parser.add_argument("--env", action="store_true", help="print one line per token setting")
    args = parser.parse_args(argv)

    if not args.env:
        print(generate_secure_token(args.length))
        return

    for name in ENV_NAMES:
        token = generate_secure_token(args.length)
        for warning in validate_token_strength(token, name):
            print(f"# warning: {warning}")
        print(f"{name}={token}")


if __name__ == "__main__":
    main()
