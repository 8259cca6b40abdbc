"""Environment settings for the DRACO Lambdas, built once per invocation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from draco.errors import ConfigurationError

_FALSEY = ("", "0", "false", "no", "off")


def _flag(raw: Optional[str]) -> bool:
    return str(raw or "").strip().lower() not in _FALSEY


def _int(raw: Optional[str], default: int) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return default


def _debug_level(raw: Optional[str]) -> int:
    text = str(raw or "").strip().lower()
    if text in _FALSEY:
        return 0
    return max(1, _int(text, 1))


@dataclass(frozen=True)
class DracoSettings:
    environment: Optional[str] = None
    region: str = "us-east-1"
    key_arn: Optional[str] = None
    transit_key_arn: Optional[str] = None
    dr_account: Optional[str] = None
    dr_topic_arn: Optional[str] = None
    producer_topic_arn: Optional[str] = None
    state_machine_arn: Optional[str] = None
    tag_key: str = "Draco"
    tag_value: str = "DR"
    debug: int = 0
    dry_run: bool = False
    key_store: str = "alias"
    key_bucket: Optional[str] = None
    producer_role_name: Optional[str] = None
    max_poll_iterations: int = 120
    poll_interval: int = 60

    @staticmethod
    def load(environ: Optional[Mapping[str, str]] = None) -> "DracoSettings":
        env = os.environ if environ is None else environ
        region = env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or "us-east-1"
        dr_account = env.get("DR_ACCT") or None
        key_store = (env.get("KEY_STORE") or "alias").strip().lower()
        if key_store not in ("alias", "s3"):
            raise ConfigurationError(f"KEY_STORE must be 'alias' or 's3', got {key_store!r}")

        return DracoSettings(
            environment=env.get("ENVIRONMENT"),
            region=region,
            key_arn=env.get("KEY_ARN") or None,
            transit_key_arn=env.get("TRANSIT_KEY_ARN") or None,
            dr_account=dr_account,
            dr_topic_arn=env.get("DR_TOPIC_ARN") or None,
            producer_topic_arn=env.get("PRODUCER_TOPIC_ARN") or None,
            state_machine_arn=env.get("STATE_MACHINE_ARN") or env.get("SM_COPY_ARN") or None,
            tag_key=env.get("TAG_KEY") or "Draco",
            tag_value=env.get("TAG_VALUE") or "DR",
            debug=_debug_level(env.get("DEBUG")),
            dry_run=_flag(env.get("DRY_RUN")),
            key_store=key_store,
            key_bucket=env.get("KEY_BUCKET") or (f"draco-{dr_account}-{region}" if dr_account else None),
            producer_role_name=env.get("PRODUCER_ROLE_NAME") or f"DracoProducer-{region}",
            max_poll_iterations=max(1, _int(env.get("MAX_POLL_ITERATIONS"), 120)),
            poll_interval=max(1, _int(env.get("POLL_INTERVAL"), 60)),
        )

    def require(self, name: str) -> str:
        """Return a non-empty setting or raise ``ConfigurationError``."""
        value = getattr(self, name, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ConfigurationError(f"Setting '{name}' is required for this operation")
        return str(value)
