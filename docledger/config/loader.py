"""YAML config loading with env var expansion and layered merging."""

import logging
import os
import re
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from .models import LedgerConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "docledger.yaml"

M = TypeVar("M", bound=BaseModel)


def merge_config(base: M, override: M) -> M:
    """Return *base* with every field explicitly set on *override* applied.

    Nested models merge field by field; everything else is replaced.
    Neither input is modified.
    """
    updates: dict[str, object] = {}
    for name in override.model_fields_set:
        value = getattr(override, name)
        current = getattr(base, name)
        if isinstance(value, BaseModel) and isinstance(current, BaseModel):
            updates[name] = merge_config(current, value)
        else:
            updates[name] = value
    return base.model_copy(update=updates, deep=True)


def load_config(
    cli_path: str | None = None,
    project_path: str | Path | None = None,
) -> LedgerConfig:
    """Load config, layering defaults < user-global < project-local < CLI file."""
    project_root = Path(project_path) if project_path is not None else Path(".")
    layers = [
        Path.home() / ".docledger" / "config.yaml",
        project_root / CONFIG_FILENAME,
    ]
    if cli_path:
        explicit = Path(cli_path)
        if not explicit.exists():
            raise ValueError(f"Config file not found: {explicit}")
        layers.append(explicit)

    config = LedgerConfig()
    for path in layers:
        if not path.exists():
            continue
        layer = _read_layer(path)
        if layer is not None:
            logger.debug("Applying config layer %s", path)
            config = merge_config(config, layer)
    return config


def _read_layer(path: Path) -> LedgerConfig | None:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping")
    try:
        return LedgerConfig(**_expand_env_vars(raw))
    except ValidationError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `docledger init`
DEFAULT_CONFIG_TEMPLATE = """\
# docledger.yaml

# Paths skipped while scanning (names, relative paths or globs)
# exclude: [".docs", "node_modules", ".git", "dist", "build", "*.log"]

# LLM Provider
llm:
  provider: "anthropic"        # anthropic | openai
  model: "claude-haiku-4-5-20251001"
  api_key_env: "ANTHROPIC_API_KEY"
  max_tokens: 4000
  temperature: 0.3

# Retry with exponential backoff
retry:
  max_retries: 3
  initial_delay: 1.0           # seconds
  max_delay: 60.0
  multiplier: 2.0

# Merge staged results into the manifest every `size` successes
bundle:
  size: 5
  max_workers: 4

# Summaries per audience. Product and executive are derived from engineering
audiences:
  engineering:
    enabled: true
  product:
    enabled: true
  executive:
    enabled: true

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
