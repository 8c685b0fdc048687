"""
Parameters Archive Loader

Loads policy tables and KPI definitions from versioned archive files.
Computes parameters_hash for audit trail.

Fail-closed: missing or invalid params file stops the run.

Security Features:
- File size limits
- Symlink refusal
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from common.input_validation import EngineInputError
from governance.canonical_json import canonical_dumps
from governance.hashing import hash_canonical_json_short

logger = logging.getLogger(__name__)

# Default params archive directory (relative to repo root)
DEFAULT_PARAMS_DIR = "params_archive"
MAX_PARAMS_FILE_SIZE_MB = 10

DEFAULT_POLICY_VERSION = "policy_v1"
DEFAULT_KPI_VERSION = "kpi_definitions_v1"


class ParamsLoadError(Exception):
    """Error loading parameters from archive."""
    pass


class ParamsValidationError(ParamsLoadError):
    """Parameters parsed as JSON but do not describe a valid table."""
    pass


def get_params_path(
    version: str,
    params_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Get path to a parameters file.

    Args:
        version: File stem (e.g., "policy_v1")
        params_dir: Optional override for params directory
    """
    if params_dir is None:
        params_dir = Path(__file__).parent.parent / DEFAULT_PARAMS_DIR
    return Path(params_dir) / f"{version}.json"


def compute_parameters_hash(params: Dict[str, Any], length: int = 16) -> str:
    """Truncated canonical JSON hash of a parameters dict."""
    return hash_canonical_json_short(params, length=length)


def load_params(
    version: str,
    params_dir: Optional[Union[str, Path]] = None,
) -> Tuple[Dict[str, Any], str]:
    """
    Load a raw parameters dict.

    Returns:
        Tuple of (params_dict, parameters_hash)

    Raises:
        ParamsLoadError: If params file missing, unsafe or not a JSON object
    """
    params_path = get_params_path(version, params_dir)

    if not params_path.exists():
        raise ParamsLoadError(
            f"Parameters file not found: {params_path}. "
            f"Create {params_path} for version '{version}'."
        )

    # SECURITY: Check for symlinks
    if params_path.is_symlink():
        raise ParamsLoadError(
            f"Parameters file is a symbolic link (security risk): {params_path}"
        )

    size_mb = params_path.stat().st_size / (1024 * 1024)
    if size_mb > MAX_PARAMS_FILE_SIZE_MB:
        raise ParamsLoadError(
            f"Parameters file too large: {params_path} ({size_mb:.1f} MB > {MAX_PARAMS_FILE_SIZE_MB} MB)"
        )

    try:
        with open(params_path, 'r', encoding='utf-8') as f:
            params = json.load(f)
    except json.JSONDecodeError as e:
        raise ParamsLoadError(f"Invalid JSON in {params_path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ParamsLoadError(f"Invalid encoding in {params_path}: {e}") from e
    except OSError as e:
        raise ParamsLoadError(f"Error reading {params_path}: {e}") from e

    if not isinstance(params, dict):
        raise ParamsLoadError(f"Parameters must be a JSON object, got {type(params).__name__}")

    params_hash = compute_parameters_hash(params)
    logger.debug(f"Loaded parameters {params_path} (hash: {params_hash})")
    return params, params_hash


def load_policy_table(
    version: str = DEFAULT_POLICY_VERSION,
    params_dir: Optional[Union[str, Path]] = None,
):
    """
    Load and validate a fusion policy table.

    Raises:
        ParamsLoadError: file missing or unreadable
        ParamsValidationError: table fails validation
    """
    from fusion_engine import PolicyTable

    params, params_hash = load_params(version, params_dir)
    try:
        table = PolicyTable.from_mapping(params)
    except EngineInputError as e:
        raise ParamsValidationError(f"Invalid policy table '{version}': {e}") from e

    logger.info(f"Policy table '{version}' loaded: profiles={list(table.profiles)} hash={params_hash}")
    return table


def load_kpi_definitions(
    version: str = DEFAULT_KPI_VERSION,
    params_dir: Optional[Union[str, Path]] = None,
):
    """
    Load and validate KPI definitions as {kpi_id: KPIDefinition}.

    Raises:
        ParamsLoadError: file missing or unreadable
        ParamsValidationError: a definition fails validation
    """
    from signal_engine import load_definitions

    params, params_hash = load_params(version, params_dir)
    try:
        definitions = load_definitions(params)
    except EngineInputError as e:
        raise ParamsValidationError(f"Invalid KPI definitions '{version}': {e}") from e

    logger.info(f"KPI definitions '{version}' loaded: {sorted(definitions)} hash={params_hash}")
    return definitions


def save_params(
    params: Dict[str, Any],
    version: str,
    params_dir: Optional[Union[str, Path]] = None,
) -> Tuple[Path, str]:
    """
    Write parameters as canonical JSON, atomically.

    Returns:
        Tuple of (path, parameters_hash)
    """
    params_path = get_params_path(version, params_dir)
    params_path.parent.mkdir(parents=True, exist_ok=True)

    content = canonical_dumps(params)

    # Write to temp file first, then atomic rename
    fd, tmp_path = tempfile.mkstemp(
        dir=params_path.parent,
        prefix='.tmp_params_',
        suffix='.json'
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        Path(tmp_path).replace(params_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise

    params_hash = compute_parameters_hash(params)
    logger.debug(f"Saved parameters to {params_path} (hash: {params_hash})")
    return params_path, params_hash
