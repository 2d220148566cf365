"""Invocation output handling.

Outputs go to the GitHub Actions output file ($GITHUB_OUTPUT) when running
inside a workflow, and optionally to a JSON file.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any


def format_output(name: str, value: str) -> str:
    """Format one output in GITHUB_OUTPUT syntax.

    Multi-line values use the heredoc form with a random delimiter.
    """
    if "\n" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def write_github_outputs(path: str | Path, outputs: Mapping[str, str]) -> None:
    """Append outputs to a GITHUB_OUTPUT file."""
    with open(path, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            f.write(format_output(name, value))


def write_output(dest: str | Path, obj: Any) -> None:
    """Write output to a JSON file.

    Raises:
        TypeError: If obj is not JSON serializable.
    """
    dest_path = Path(dest)

    # Ensure parent directory exists
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    with open(dest_path, "w") as f:
        json.dump(obj, f, indent=2, default=str)
        f.write("\n")


def error_annotation(message: str) -> str:
    """GitHub Actions workflow command marking the step as failed."""
    escaped = message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
    return f"::error::{escaped}"
