"""
sshfs-box Core Helpers
This module contains the shared plumbing for the sshfs-box toolkit: command execution,
config file locations, safe JSON persistence and logging setup.

GUIDELINES:
- COMMANDS: Use `run_command` instead of raw `subprocess.run` for consistent error handling.
- CONFIG: Use `get_config_path()` to locate ~/.config/sshfs-box.json (or $SSHFS_BOX_CONFIG).
- PERSISTENCE: Use `safe_write_text` so a broken write never destroys the previous config.
- UI: This module re-exports TUI helpers from `.tui`. Use them for all interactivity.
- PATHS: Always use `pathlib.Path` and handle `~` expansion for user inputs.
"""

import os
import shutil
import subprocess
import datetime
import logging
import re
import shlex
import tempfile
from pathlib import Path
from typing import Optional, Dict, List

from rich.logging import RichHandler

# Re-export UI components for convenience
from .tui import (
    console,
    prompt_yes_no,
    prompt_checkbox,
    prompt_editor,
)

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "sshfs-box.json"
CONFIG_ENV_VAR = "SSHFS_BOX_CONFIG"

# --- Backup Helpers ---
BACKUP_KEEP_DEFAULT = 5
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"  # yyyymmddhhmmss
# ----------------------


def get_config_dir() -> Path:
    """Return the XDG-style config directory (~/.config/)."""
    return Path.home() / ".config"


def get_config_path() -> Path:
    """Return the config file path, honouring $SSHFS_BOX_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(os.path.expanduser(override))
    return get_config_dir() / CONFIG_FILENAME


def _backup_path(path: Path, ts: str, counter: int = 0) -> Path:
    """
    abc.json -> abc-yyyymmddhhmmss.json (or abc-yyyymmddhhmmss-1.json on collision)
    """
    suffix = path.suffix or ".json"
    base = path.with_suffix("").name
    if counter <= 0:
        return path.with_name(f"{base}-{ts}{suffix}")
    return path.with_name(f"{base}-{ts}-{counter}{suffix}")


def _rotate_backups(path: Path, keep: int) -> None:
    """
    Keep only the newest `keep` backups named like abc-yyyymmddhhmmss.json or abc-yyyymmddhhmmss-<n>.json.
    """
    if keep <= 0:
        return
    suffix = path.suffix or ".json"
    base = path.with_suffix("").name
    pattern = re.compile(rf"^{re.escape(base)}-(\d{{14}})(?:-(\d+))?{re.escape(suffix)}$")

    matches: List[tuple] = []
    try:
        for p in path.parent.iterdir():
            if not p.is_file():
                continue
            m = pattern.match(p.name)
            if not m:
                continue
            matches.append((m.group(1), int(m.group(2) or "0"), p))
    except OSError as e:
        logger.warning("Could not list backups in %s: %s", path.parent, e)
        return

    # Newest first by (timestamp, counter)
    matches.sort(key=lambda t: (t[0], t[1]), reverse=True)
    for _, _, p in matches[keep:]:
        try:
            p.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove old backup %s: %s", p, e)


def backup_with_timestamp(path: Path, keep: int = BACKUP_KEEP_DEFAULT) -> Optional[Path]:
    """
    If `path` exists, copy it to a timestamped backup next to it, then rotate backups.
    Returns the created backup path, or None if no backup was created.
    """
    if not path.is_file():
        return None

    ts = datetime.datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
    backup_path = _backup_path(path, ts, 0)
    counter = 0
    while backup_path.exists():
        counter += 1
        backup_path = _backup_path(path, ts, counter)

    try:
        shutil.copy2(path, backup_path)
    except OSError as e:
        logger.warning("Could not back up %s: %s", path, e)
        return None

    _rotate_backups(path, keep=keep)
    return backup_path


def atomic_write_text(path: Path, content: str) -> None:
    """
    Atomically write text by writing to a temp file in the same directory and renaming.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        delete=False,
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    ) as tf:
        tf.write(content)
        tf.flush()
        os.fsync(tf.fileno())
        tmp_path = Path(tf.name)
    os.replace(tmp_path, path)


def safe_write_text(path: Path, content: str, *, keep_backups: int = BACKUP_KEEP_DEFAULT) -> None:
    """
    Safe persistence:
    - Create a timestamped backup of the existing file (rotated to `keep_backups`)
    - Atomically replace the file with the new content
    """
    backup_with_timestamp(path, keep=keep_backups)
    atomic_write_text(path, content)


def run_command(cmd: List[str], capture_output: bool = True, cwd: Optional[Path] = None, env: Optional[Dict[str, str]] = None) -> subprocess.CompletedProcess:
    """
    Robust wrapper for subprocess execution.
    Handles encoding, output capture, and provides a mock response on failure.
    """
    logger.debug("$ %s", " ".join(shlex.quote(str(c)) for c in cmd))
    try:
        res = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            check=False, # We usually want to handle errors manually
            cwd=cwd,
            env=env
        )
    except (OSError, subprocess.SubprocessError) as e:
        # Create a mock CompletedProcess for catastrophic failures
        logger.debug("%s could not be started: %s", cmd[0], e)
        return subprocess.CompletedProcess(args=cmd, returncode=1, stdout="", stderr=str(e))
    if res.returncode != 0:
        logger.debug("%s exited with %s", cmd[0], res.returncode)
    return res


def missing_binaries(names: List[str]) -> List[str]:
    """Return the subset of `names` that cannot be found on PATH."""
    return [n for n in names if not shutil.which(n)]


def setup_logging(verbose: bool = False) -> None:
    """Route stdlib logging through rich; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )
