"""
Configuration loader for the offloading queue.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from models.schemas import MAX_QUEUE_BODY_BYTES, OffloadPolicy


@dataclass
class OffloadConfig:
    always_store: bool = False          # offload every body, not just oversized ones
    cleanup: bool = True                # delete the blob when the job is deleted
    disk: str = "s3"                    # blob store identifier (bucket alias)
    prefix: str = "offloaded"           # key prefix for this queue's objects
    size_threshold: int = MAX_QUEUE_BODY_BYTES

    def to_policy(self) -> OffloadPolicy:
        return OffloadPolicy(
            always_store=self.always_store,
            cleanup_on_delete=self.cleanup,
            store_identifier=self.disk,
            key_prefix=self.prefix,
            size_threshold_bytes=self.size_threshold,
        )


@dataclass
class QueueConfig:
    backend: str = "memory"             # "memory" | "redis" | "sqs"
    name: str = "default"               # default destination
    redis_url: str = "redis://localhost:6379"
    namespace: str = "offload"          # redis key namespace
    visibility_timeout: int = 30        # seconds a received message stays hidden
    sqs_prefix: str = ""                # https://sqs.<region>.amazonaws.com/<account>
    sqs_region: str = "us-east-1"
    sqs_endpoint_url: str = ""          # LocalStack etc.
    wait_time_seconds: int = 0          # SQS long-poll; 0 keeps pop() non-blocking


@dataclass
class StorageConfig:
    backend: str = "memory"             # "memory" | "file" | "s3"
    file_dir: str = "./data/blobs"
    s3_region: str = "us-east-1"
    s3_endpoint_url: str = ""
    buckets: dict[str, str] = field(default_factory=dict)   # disk alias → bucket


@dataclass
class Settings:
    app_name: str = "OffloadQueue"
    debug: bool = False
    log_level: str = "info"
    queue: QueueConfig = field(default_factory=QueueConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    offload: OffloadConfig = field(default_factory=OffloadConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "OFFLOAD_QUEUE_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = _as_bool(raw.get("debug", settings.debug))
        settings.log_level = raw.get("log_level", settings.log_level)

        if "queue" in raw:
            q = raw["queue"] or {}
            defaults = QueueConfig()
            settings.queue = QueueConfig(
                backend=q.get("backend", defaults.backend),
                name=q.get("name", defaults.name),
                redis_url=q.get("redis_url", defaults.redis_url),
                namespace=q.get("namespace", defaults.namespace),
                visibility_timeout=int(q.get("visibility_timeout", defaults.visibility_timeout)),
                sqs_prefix=q.get("sqs_prefix", defaults.sqs_prefix),
                sqs_region=q.get("sqs_region", defaults.sqs_region),
                sqs_endpoint_url=q.get("sqs_endpoint_url", defaults.sqs_endpoint_url),
                wait_time_seconds=int(q.get("wait_time_seconds", defaults.wait_time_seconds)),
            )

        if "storage" in raw:
            s = raw["storage"] or {}
            defaults = StorageConfig()
            settings.storage = StorageConfig(
                backend=s.get("backend", defaults.backend),
                file_dir=s.get("file_dir", defaults.file_dir),
                s3_region=s.get("s3_region", defaults.s3_region),
                s3_endpoint_url=s.get("s3_endpoint_url", defaults.s3_endpoint_url),
                buckets=s.get("buckets") or {},
            )

        if "offload" in raw:
            o = raw["offload"] or {}
            defaults = OffloadConfig()
            settings.offload = OffloadConfig(
                always_store=_as_bool(o.get("always_store", defaults.always_store)),
                cleanup=_as_bool(o.get("cleanup", defaults.cleanup)),
                disk=o.get("disk", defaults.disk),
                prefix=o.get("prefix", defaults.prefix),
                size_threshold=int(o.get("size_threshold", defaults.size_threshold)),
            )

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
