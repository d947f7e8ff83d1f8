"""
sshfs-box TUI Helpers
Thin wrappers around questionary/rich so every prompt behaves the same way:
a prompt returns None when the user aborts (Ctrl-C), never raises.
"""

import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import questionary
from rich.console import Console

console = Console()

# A validator returns True for valid input or an error message string.
Validator = Callable[[str], Union[bool, str]]


def prompt_yes_no(message: str, default: bool = True) -> bool:
    """Ask a yes/no question. An aborted prompt counts as 'no'."""
    answer = questionary.confirm(message, default=default).ask()
    return bool(answer)


def prompt_checkbox(message: str, choices: List[Dict[str, Any]]) -> Optional[List[Any]]:
    """
    Present a checklist.
    `choices` are dicts with "title", "value" and optional "checked" keys.
    Returns the values of the checked items, or None if the user aborted.
    """
    q_choices = [
        questionary.Choice(title=c["title"], value=c["value"], checked=bool(c.get("checked")))
        for c in choices
    ]
    return questionary.checkbox(message, choices=q_choices).ask()


def _editor_command() -> Optional[List[str]]:
    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR")
    if not editor:
        return None
    return shlex.split(editor)


def _edit_in_editor(editor: List[str], text: str) -> Optional[str]:
    """Open `text` in an external editor and return the saved contents."""
    with tempfile.NamedTemporaryFile(
        mode="w", encoding="utf-8", suffix=".json", prefix="sshfs-box-", delete=False
    ) as tf:
        tf.write(text)
        tmp_path = Path(tf.name)
    try:
        res = subprocess.run(editor + [str(tmp_path)], check=False)
        if res.returncode != 0:
            console.print(f"[red]Editor exited with status {res.returncode}.[/red]")
            return None
        return tmp_path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Could not run editor {editor[0]}: {e}[/red]")
        return None
    finally:
        tmp_path.unlink(missing_ok=True)


def prompt_editor(message: str, default: str, validate: Validator) -> Optional[str]:
    """
    Let the user edit a block of text until `validate` accepts it.

    Uses $VISUAL/$EDITOR on a temporary file when set, otherwise a multi-line
    questionary prompt (Esc+Enter to submit). Returns None if the user gives up.
    """
    editor = _editor_command()
    if editor is None:
        console.print(f"[bold]{message}[/bold] [dim](Esc+Enter to submit)[/dim]")
        return questionary.text(message, default=default, multiline=True, validate=validate).ask()

    text = default
    while True:
        console.print(f"[bold]{message}[/bold] [dim](opening {editor[0]})[/dim]")
        edited = _edit_in_editor(editor, text)
        if edited is None:
            return None
        result = validate(edited)
        if result is True:
            return edited
        console.print(f"[red]Invalid config:[/red] {result}")
        if not prompt_yes_no("Edit again?", default=True):
            return None
        text = edited
