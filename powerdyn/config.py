"""Default paths and constants for dynamics data decoding."""
from pathlib import Path

# Bundled YAML model schemas shipped with the package
BUNDLED_METADATA_DIR = Path(__file__).parent / "metadata"

# Structured (TOML) sources above this size are rejected before parsing
MAX_TOML_FILE_SIZE = 100 * 1024 * 1024  # 100 MB

# Legacy (DYR) framing constants
COMMENT_PREFIXES = ("@!", "//")
DEFAULT_TERMINATOR = "/"
MODEL_NAME_FIELD = 2    # 1-based token position of the quoted model name
MIN_RECORD_TOKENS = 3   # bus, model name, id

DYR_SUFFIXES = frozenset({".dyr"})
TOML_SUFFIXES = frozenset({".toml"})


def detect_format(path: Path) -> str:
    """Return 'dyr' or 'toml' based on the file suffix."""
    suffix = path.suffix.lower()
    if suffix in DYR_SUFFIXES:
        return "dyr"
    if suffix in TOML_SUFFIXES:
        return "toml"
    raise ValueError(f"Cannot infer format from suffix {path.suffix!r}: {path}")


def derive_toml_path(dyr: Path) -> Path:
    """Derive the converted TOML path from a DYR path (sibling, same stem)."""
    return dyr.with_suffix(".toml")
