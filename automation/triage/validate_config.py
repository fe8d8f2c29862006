#!/usr/bin/env python3
"""Validate the triage bot config YAML and digest recipient list against their schemas."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from automation.triage.config import CONFIG_FILE, RECIPIENTS_FILE, ConfigError, load_config, load_recipients


def fail(message: str) -> int:
    print(f"❌ triage config validation failed: {message}")
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", type=Path, default=CONFIG_FILE, help="Path to config YAML")
    parser.add_argument("--recipients", type=Path, default=RECIPIENTS_FILE, help="Path to recipients JSON")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        return fail(str(exc))

    if not args.recipients.exists():
        return fail(f"missing recipient list: {args.recipients}")
    try:
        recipients = load_recipients(args.recipients)
    except ValueError as exc:
        return fail(f"{args.recipients}: {exc}")

    print("✅ triage config passed schema validation")
    print(f"   repository: {config.full_name}")
    print(f"   triagers: {len(config.triagers)}")
    print(f"   digest recipients: {len(recipients)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
