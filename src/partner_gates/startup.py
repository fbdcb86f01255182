"""Centralized initialization for partner_gates entry points.

This module provides a single point of initialization for:
- Environment variables (.env loading)
- Data directory resolution for the filesystem blob store

Entry points (CLI, embedding services) should call ensure_initialized()
before touching configuration or storage.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DATA_DIR_ENV_VAR = "PARTNER_GATES_DATA_DIR"
DEFAULT_DATA_DIRNAME = ".partner-gates"


@dataclass
class AppState:
    """Resolved application state after initialization."""

    project_root: Path
    data_dir: Path
    env_loaded: bool = False


# Module-level state
_initialized: bool = False
_state: Optional[AppState] = None


def _find_project_root(start_path: Optional[Path] = None) -> Path:
    """Find project root by looking for a .env or pyproject.toml.

    Args:
        start_path: Starting path for search. Defaults to the working directory.
    """
    if start_path is None:
        start_path = Path.cwd()

    for parent in [start_path] + list(start_path.parents):
        if (parent / ".env").exists() or (parent / "pyproject.toml").exists():
            return parent
    return start_path


def _load_env(project_root: Path) -> bool:
    """Load .env file from project root.

    Returns:
        True if .env was loaded, False otherwise.
    """
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.debug(f"Loaded .env from {env_path}")
        return True
    logger.debug(f".env not found at {env_path}")
    return False


def _resolve_data_dir(project_root: Path) -> Path:
    configured = os.getenv(DATA_DIR_ENV_VAR)
    if configured:
        data_dir = Path(configured)
        if not data_dir.is_absolute():
            data_dir = project_root / data_dir
        return data_dir
    return project_root / DEFAULT_DATA_DIRNAME


def ensure_initialized() -> AppState:
    """Ensure the application is initialized (idempotent).

    Loads .env and resolves the data directory on first call.
    Subsequent calls return cached state.
    """
    global _initialized, _state

    if _initialized and _state is not None:
        return _state

    project_root = _find_project_root()
    env_loaded = _load_env(project_root)
    _state = AppState(
        project_root=project_root,
        data_dir=_resolve_data_dir(project_root),
        env_loaded=env_loaded,
    )
    _initialized = True
    logger.debug(f"Data directory: {_state.data_dir}")

    return _state


def get_data_dir() -> Path:
    """Get the data directory used by the filesystem store.

    Initializes if needed.
    """
    return ensure_initialized().data_dir


def reset_state() -> None:
    """Forget cached initialization (tests and environment switches)."""
    global _initialized, _state
    _initialized = False
    _state = None
