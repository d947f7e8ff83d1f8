#!/usr/bin/env python3
"""
Mount/unmount a fixed list of remote directories with sshfs from a checklist.

Each entry of ~/.config/sshfs-box.json "urls" ("user@host:/path") is bound to a
mount point under "folder". Checked entries get mounted, unchecked ones get
unmounted; a stuck mount is released by killing its sshfs process.

Usage:
  sshfs-box [options]

Options:
  --config, -c   Configure remote & local paths (opens an editor)
  --list, -l     Show mount state without prompting
  --yes, -y      Do not ask before killing a stuck sshfs process
  --verbose, -v  Log every external command
"""

import argparse
import sys
from pathlib import Path

# Add project root to sys.path so we can find 'helpers'
project_root = str(Path(__file__).resolve().parent.parent)
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from helpers.core import console, get_config_path, missing_binaries, setup_logging
from helpers.sshfs import (
    REQUIRED_BINARIES,
    build_entries,
    prompt_sshfs,
    read_mount_table,
    resolve_config,
    status_table,
)
from rich.panel import Panel

# Tool identity and descriptions (summary panel, -h)
TOOL_ID = "sshfs-box"
TOOL_TITLE = "SSHFS Box"
TOOL_SHORT_DESC = "Mount/unmount remote directories with sshfs from a checklist."
TOOL_DESCRIPTION = "Small CLI tool to mount/unmount directories on remote servers with sshfs. Config stored in ~/.config/sshfs-box.json."


def show_summary():
    """Display a brief summary of the tool's capabilities."""
    summary = (
        f"[bold cyan]{TOOL_ID}[/bold cyan]: {TOOL_DESCRIPTION}\n\n"
        f"[bold]Capabilities:[/bold]\n"
        f"• [bold]Checklist:[/bold] Already-mounted entries come pre-checked; toggle to mount/unmount.\n"
        f"• [bold]Mount Points:[/bold] user@host:/dir → <folder>/user@host--dir\n"
        f"• [bold]Force Unmount:[/bold] Kills a stuck sshfs process when fusermount fails.\n\n"
        f"[bold]Requirements:[/bold]\n"
        f"• `sshfs` and `fusermount` must be installed."
    )
    console.print(Panel(summary, title=TOOL_TITLE, expand=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=TOOL_ID,
        description=TOOL_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-c", "--config", "--configure", "--settings", dest="config", action="store_true",
                        help="Configure remote & local paths (stored in ~/.config/sshfs-box.json)")
    parser.add_argument("-l", "--list", action="store_true", help="Show mount state and exit")
    parser.add_argument("-y", "--yes", action="store_true", help="Kill stuck sshfs processes without asking")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every external command")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    config_path = get_config_path()
    config = resolve_config(config_path, force_edit=args.config)
    if config is None:
        console.print("[yellow]Aborted.[/yellow]")
        return 1

    if args.list:
        console.print(status_table(build_entries(config, read_mount_table())))
        return 0

    missing = missing_binaries(REQUIRED_BINARIES)
    if missing:
        console.print(f"[bold red]Error:[/bold red] required command(s) not found: {', '.join(missing)}")
        return 1

    show_summary()
    result = prompt_sshfs(config, confirm_kill=not args.yes)
    if result is None:
        console.print("[yellow]Aborted.[/yellow]")
        return 0
    return 0 if result.ok else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted.[/yellow]")
        sys.exit(130)
