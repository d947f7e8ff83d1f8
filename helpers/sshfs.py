#!/usr/bin/env python3
"""
SSHFS mount reconciliation.

Config shape: {"urls": ["user@host:/path", ...], "folder": "/local/root"}.
Each remote spec is bound to a derived mount point under `folder`; the live
`mount` table decides what is currently mounted, and the user's checklist
decides what should be.
"""

import json
import logging
import os
import re
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from rich.markup import escape
from rich.table import Table

from .core import (
    console,
    prompt_checkbox,
    prompt_editor,
    prompt_yes_no,
    run_command,
    safe_write_text,
)

logger = logging.getLogger(__name__)

# --- Commands ---
MOUNT_TABLE_CMD = ["mount"]
PROCESS_TABLE_CMD = ["ps", "-eo", "pid=,args="]
REQUIRED_BINARIES = ["sshfs", "fusermount"]
# ----------------

CHECKBOX_MESSAGE = "SSHFS mount/unmount dirs"
EDITOR_MESSAGE = "Configure sshfs-box"
DEFAULT_URLS = ["user@host1:", "user@host2:/home/user", "user@host2:/www"]


@dataclass(frozen=True)
class MountEntry:
    """One remote spec and the local mount point it is bound to."""
    remote: str
    local: Path
    mounted: bool = False

    @property
    def title(self) -> str:
        return f"{self.remote} ↔ {self.local}"


@dataclass
class ReconcileResult:
    mounted: List[MountEntry] = field(default_factory=list)
    unmounted: List[MountEntry] = field(default_factory=list)
    failed: List[MountEntry] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# --- Config ---

def default_config() -> Dict[str, Any]:
    return {"urls": list(DEFAULT_URLS), "folder": str(Path.home() / "remote")}


def dump_config(config: Dict[str, Any]) -> str:
    return json.dumps(config, indent=2)


def validate_config_string(text: str) -> Tuple[bool, Optional[str]]:
    """
    Check that `text` is a JSON object with a non-empty `urls` list of strings
    and a non-empty string `folder`. Returns (valid, error_message).
    """
    try:
        config = json.loads(text)
    except (TypeError, ValueError):
        return False, "Error parsing JSON"

    if not isinstance(config, dict):
        return False, "config must be a JSON object"

    urls = config.get("urls")
    folder = config.get("folder")
    if not urls:
        return False, '"urls" field is missing or empty'
    if not isinstance(urls, list):
        return False, '"urls" field is not an array'
    if any(not isinstance(u, str) for u in urls):
        return False, 'all items in "urls" need to be strings'
    if not folder:
        return False, '"folder" field is missing or empty'
    if not isinstance(folder, str):
        return False, '"folder" field must be a string'
    return True, None


def _validate_for_prompt(text: str):
    # questionary expects True or an error string
    valid, err = validate_config_string(text)
    return True if valid else err


def parse_config(text: str) -> Dict[str, Any]:
    """Parse an already validated config string, expanding `~` in the folder."""
    config = json.loads(text)
    config["folder"] = os.path.expanduser(config["folder"])
    return config


def edit_config(config_path: Path, current: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Open the config editor, persist the result and return the parsed config."""
    text = prompt_editor(EDITOR_MESSAGE, current or dump_config(default_config()), _validate_for_prompt)
    if text is None:
        return None
    safe_write_text(config_path, text)
    console.print(f"[green]Config saved to {escape(str(config_path))}[/green]")
    return parse_config(text)


def resolve_config(config_path: Path, force_edit: bool = False) -> Optional[Dict[str, Any]]:
    """
    Load the config, falling back to the editor when it is missing or invalid.
    Returns None if the user abandons editing.
    """
    try:
        text = config_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        console.print(f"[yellow]Can't open config on {escape(str(config_path))}, creating new config[/yellow]")
        return edit_config(config_path)

    if force_edit:
        return edit_config(config_path, text)

    valid, err = validate_config_string(text)
    if valid:
        return parse_config(text)

    console.print(f"[yellow]{escape(str(config_path))} does not contain valid config ({err}), please fix it[/yellow]")
    return edit_config(config_path, text)


# --- Paths & mount state ---

def local_path_for(remote: str, folder: str) -> Path:
    """user@host:/dir/dir -> <folder>/user@host--dir-dir"""
    return Path(os.path.join(folder, remote.replace(":", "-").replace("/", "-")))


def read_mount_table() -> List[str]:
    """Return the lines of `mount` output; empty when the command fails."""
    res = run_command(MOUNT_TABLE_CMD)
    if res.returncode != 0:
        logger.warning("Could not read mount table: %s", res.stderr.strip())
        return []
    return res.stdout.splitlines()


def is_mounted(remote: str, local: Path, table: Iterable[str]) -> bool:
    prefix = f"{remote} on {local}"
    return any(line == prefix or line.startswith(prefix + " ") for line in table)


def build_entries(config: Dict[str, Any], table: Iterable[str]) -> List[MountEntry]:
    """One entry per distinct url, in config order, flagged with its live mount state."""
    table = list(table)
    folder = config["folder"]
    entries: List[MountEntry] = []
    seen = set()
    for remote in config["urls"]:
        if remote in seen:
            continue
        seen.add(remote)
        local = local_path_for(remote, folder)
        entries.append(MountEntry(remote, local, is_mounted(remote, local, table)))
    return entries


def status_table(entries: List[MountEntry]) -> Table:
    table = Table(title="SSHFS Mounts")
    table.add_column("Remote", style="cyan")
    table.add_column("Mount point", style="dim")
    table.add_column("State")
    for e in entries:
        state = "[green]mounted[/green]" if e.mounted else "[dim]-[/dim]"
        table.add_row(escape(e.remote), escape(str(e.local)), state)
    return table


# --- Reconciliation ---

def plan_changes(entries: List[MountEntry], selected: Iterable[str]) -> Tuple[List[MountEntry], List[MountEntry]]:
    """
    Diff the desired state (selected remotes) against the live state.
    Returns (to_mount, to_unmount); entries already in the desired state are skipped.
    """
    wanted = set(selected)
    to_mount = [e for e in entries if e.remote in wanted and not e.mounted]
    to_unmount = [e for e in entries if e.remote not in wanted and e.mounted]
    return to_mount, to_unmount


def _print_error(remote: str, detail: str) -> None:
    console.print(f"[bold white on red]! ERROR:     {escape(remote)}[/bold white on red]")
    console.print(textwrap.indent(detail.strip() or "unknown error", "    "), markup=False, highlight=False)


def mount_entry(entry: MountEntry) -> bool:
    """mkdir -p + sshfs. Errors are reported, not raised."""
    local = str(entry.local)
    res = run_command(["mkdir", "-p", local])
    if res.returncode != 0:
        _print_error(entry.remote, res.stderr)
        return False

    res = run_command(["sshfs", entry.remote, local])
    if res.returncode != 0:
        _print_error(entry.remote, res.stderr or res.stdout)
        return False

    console.print(f"[green]+ Mounted:   {escape(entry.remote)}[/green]")
    return True


def find_mount_pids(remote: str, local: Path, ps_output: str) -> List[int]:
    """
    Extract pids of `sshfs <remote> <local>` processes from `ps -eo pid=,args=` output.
    """
    pair = re.compile(rf"(?:^|\s){re.escape(remote)}\s+{re.escape(str(local))}(?:\s|$)")
    pids = []
    for line in ps_output.splitlines():
        m = re.match(r"^\s*(\d+)\s+(\S+)(.*)$", line)
        if not m:
            continue
        pid, exe, args = m.groups()
        if os.path.basename(exe) != "sshfs":
            continue
        if pair.search(args):
            pids.append(int(pid))
    return pids


def force_unmount(entry: MountEntry, confirm: bool = False) -> bool:
    """
    Kill the sshfs process backing `entry`, then retry the unmount
    (lazily as a last resort). Returns True once the mount point is released.
    """
    local = str(entry.local)
    res = run_command(PROCESS_TABLE_CMD)
    if res.returncode != 0:
        console.print(f"[red]Could not list processes: {escape(res.stderr.strip())}[/red]")
        return False

    pids = find_mount_pids(entry.remote, entry.local, res.stdout)
    if not pids:
        console.print(f"[yellow]No sshfs process found for {escape(entry.remote)}.[/yellow]")
        return False

    if confirm and not prompt_yes_no(f"Kill sshfs process {', '.join(map(str, pids))} for {entry.remote}?", default=True):
        return False

    for pid in pids:
        kill = run_command(["kill", "-9", str(pid)])
        if kill.returncode != 0:
            logger.warning("kill %s failed: %s", pid, kill.stderr.strip())

    if run_command(["fusermount", "-u", local]).returncode == 0:
        return True
    return run_command(["fusermount", "-uz", local]).returncode == 0


def unmount_entry(entry: MountEntry, confirm_kill: bool = False) -> bool:
    """fusermount -u (force fallback on failure), then remove the mount point."""
    local = str(entry.local)
    res = run_command(["fusermount", "-u", local])
    if res.returncode != 0:
        console.print(f"[yellow]Unmount of {escape(local)} failed, trying force unmount...[/yellow]")
        if not force_unmount(entry, confirm=confirm_kill):
            _print_error(entry.remote, res.stderr)
            return False

    rm = run_command(["rm", "-r", local])
    if rm.returncode != 0:
        logger.warning("Could not remove %s: %s", local, rm.stderr.strip())

    console.print(f"[blue]- Unmounted: {escape(entry.remote)}[/blue]")
    return True


def apply_changes(to_mount: List[MountEntry], to_unmount: List[MountEntry], confirm_kill: bool = False) -> ReconcileResult:
    result = ReconcileResult()
    for entry in to_mount:
        (result.mounted if mount_entry(entry) else result.failed).append(entry)
    for entry in to_unmount:
        (result.unmounted if unmount_entry(entry, confirm_kill) else result.failed).append(entry)
    return result


def prompt_sshfs(config: Dict[str, Any], confirm_kill: bool = True) -> Optional[ReconcileResult]:
    """
    Show the checklist for `config` and reconcile the mounts with the answer.
    Returns None if the user aborted the prompt.
    """
    entries = build_entries(config, read_mount_table())
    choices = [{"title": e.title, "value": e.remote, "checked": e.mounted} for e in entries]
    selected = prompt_checkbox(CHECKBOX_MESSAGE, choices)
    if selected is None:
        return None

    to_mount, to_unmount = plan_changes(entries, selected)
    if not to_mount and not to_unmount:
        console.print("[dim]Nothing to change.[/dim]")
    return apply_changes(to_mount, to_unmount, confirm_kill=confirm_kill)
