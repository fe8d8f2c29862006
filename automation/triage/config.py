"""Settings for the triage bot.

Process settings come from the environment; the repository identity,
triagers and digest options come from a YAML file checked against
``automation/schemas/triage-config.schema.json``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

ROOT = Path(__file__).resolve().parents[2]
SCHEMA_DIR = ROOT / "automation" / "schemas"
CONFIG_SCHEMA_PATH = SCHEMA_DIR / "triage-config.schema.json"
RECIPIENTS_SCHEMA_PATH = SCHEMA_DIR / "recipients.schema.json"

CONFIG_FILE = Path(os.getenv("TRIAGE_CONFIG_FILE", ROOT / ".triage" / "config.yaml"))
RECIPIENTS_FILE = Path(os.getenv("TRIAGE_RECIPIENTS_FILE", ROOT / ".triage" / "emails.json"))
STATE_DIR = Path(os.getenv("TRIAGE_STATE_DIR", ROOT / ".triage" / "state"))
DATA_FILE = STATE_DIR / "data.json"
DIGEST_DIR = STATE_DIR / "digests"

LOG_DIR = Path(os.getenv("TRIAGE_LOG_DIR", STATE_DIR))
LOG_FILE = Path(os.getenv("TRIAGE_LOG_FILE", LOG_DIR / "triage-bot.log"))

HOST = os.getenv("TRIAGE_HOST", "127.0.0.1")
PORT = int(os.getenv("TRIAGE_PORT", "2347"))
API_TIMEOUT_SEC = int(os.getenv("TRIAGE_API_TIMEOUT_SEC", "15"))
PENDING_TTL_SEC = int(os.getenv("TRIAGE_PENDING_TTL_SEC", "86400"))
REMOTE_WORKERS = int(os.getenv("TRIAGE_REMOTE_WORKERS", "4"))

GH_TOKEN = os.getenv("GITHUB_TOKEN", "")
GH_API = os.getenv("GITHUB_API_URL", "https://api.github.com")
WEBHOOK_SECRET = os.getenv("GITHUB_WEBHOOK_SECRET", "")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class DigestSettings:
    permalink_base: str = "http://localhost:2347/digest"
    from_address: str = "triage-bot@localhost"
    subject: str = "Triage digest"
    smtp_host: str = "localhost"
    smtp_port: int = 25


@dataclass(frozen=True)
class TriageConfig:
    owner: str
    repo: str
    triagers: frozenset[str]
    digest: DigestSettings = field(default_factory=DigestSettings)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def _validate(data: Any, schema_path: Path, source: Path) -> None:
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if errors:
        first = errors[0]
        path = "/".join(str(p) for p in first.absolute_path) or "<root>"
        raise ConfigError(f"{source}: schema error at {path}: {first.message}")


def load_config(path: Path = CONFIG_FILE) -> TriageConfig:
    if not path.exists():
        raise ConfigError(f"config file missing: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    _validate(data, CONFIG_SCHEMA_PATH, path)

    return TriageConfig(
        owner=data["owner"],
        repo=data["repo"],
        triagers=frozenset(data["triagers"]),
        digest=DigestSettings(**data.get("digest", {})),
    )


def load_recipients(path: Path = RECIPIENTS_FILE) -> list[str]:
    """Read the digest mailing list; the file is re-read for every digest."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    _validate(data, RECIPIENTS_SCHEMA_PATH, path)
    return list(data)
