"""YAML config loading with env var expansion.

Resolution order: ``--config`` path, ``./gogdiff.yaml``,
``~/.gogdiff/config.yaml``, built-in defaults. The first file with any
content wins; an empty file is skipped.
"""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import GogdiffConfig

PROJECT_CONFIG = "gogdiff.yaml"
USER_CONFIG_DIR = ".gogdiff"

# ${VAR} or ${VAR:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def config_search_path(cli_path: str | None = None) -> list[Path]:
    """Existing config files, highest priority first."""
    candidates = [Path(PROJECT_CONFIG), Path.home() / USER_CONFIG_DIR / "config.yaml"]
    if cli_path:
        explicit = Path(cli_path)
        if not explicit.is_file():
            raise ValueError(f"Config file not found: {cli_path}")
        candidates.insert(0, explicit)
    return [p for p in candidates if p.is_file()]


def read_config_file(path: Path) -> dict | None:
    """Parsed, env-expanded mapping from *path*; ``None`` when it is empty."""
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping, got {type(raw).__name__}")
    return _expand_env_vars(raw)


def load_config(cli_path: str | None = None) -> GogdiffConfig:
    for path in config_search_path(cli_path):
        raw = read_config_file(path)
        if raw is None:
            continue
        try:
            return GogdiffConfig.model_validate(raw)
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
    return GogdiffConfig()


def _expand_env_vars(obj: object) -> object:
    """Expand ${VAR} and ${VAR:-fallback} in every string of a YAML tree."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `gogdiff config init`
DEFAULT_CONFIG_TEMPLATE = """\
# gogdiff.yaml

# Content fingerprints
index:
  algorithm: "sha256"          # any hashlib name: sha256 | md5 | blake2b ...
  workers: 8                   # parallel hashing threads

# Binary patches between same-named files
patch:
  enabled: true
  codec: "xdelta3"
  executable: "xdelta3"
  workers: 4

# Payload archive appended to the delta script
archive:
  compression: "gz"            # gz | bz2 | xz | none

# Generated delta script
artifact:
  name: "gogdiff_delta.sh"
  python: "python3"            # interpreter the script re-executes itself with
  offset_width: 16

# Installer automation (only used when -s/-t point at installers)
population:
  wine: "wine"
  source_subdir: "drive_c/goggame"
  # timeout: 3600

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
