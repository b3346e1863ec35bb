"""Engine configuration loader.

Loads decoder and markup settings from defaults.toml (or a caller
supplied TOML file) into an EngineConfig.
"""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError

from chatstream.schemas.config import DecoderConfig, EngineConfig, MarkupConfig

# Default config directory inside the chatstream package
_CONFIG_DIR = Path(__file__).parent / "config"


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load the engine configuration from a TOML file.

    Sections that are absent fall back to the schema defaults.

    Args:
        config_path: Path to a TOML file. Defaults to chatstream/config/defaults.toml.

    Returns:
        EngineConfig populated from the file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the TOML is malformed or a section has the wrong shape.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with open(path, "rb") as f:
        try:
            raw = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {path}: {e}") from e

    decoder_section = raw.get("decoder", {})
    markup_section = raw.get("markup", {})
    for name, section in (("decoder", decoder_section), ("markup", markup_section)):
        if not isinstance(section, dict):
            raise ValueError(f"[{name}] in {path} must be a table")

    try:
        return EngineConfig(
            decoder=DecoderConfig(**decoder_section),
            markup=MarkupConfig(**markup_section),
        )
    except ValidationError as e:
        raise ValueError(f"Invalid engine config in {path}: {e}") from e


@lru_cache(maxsize=1)
def default_engine_config() -> EngineConfig:
    """Return the packaged defaults, loaded once per process."""
    return load_engine_config()
