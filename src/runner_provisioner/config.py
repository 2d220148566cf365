"""Input resolution for a provisioning invocation.

Turns a configuration bag (string-valued options, as GitHub Actions passes
them through INPUT_* environment variables) into a validated ProvisionRequest.
This is the only place where invocation inputs are read.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from runner_provisioner.errors import ConfigurationError

DEFAULT_RUNNER_LABEL = "self-hosted"
DEFAULT_REGION = "us-east"
DEFAULT_RUNNER_VERSION = "2.317.0"


def is_runner_version(value: str) -> bool:
    """True for a dotted version number such as 2.317.0."""
    return bool(value) and all(part.isdigit() for part in value.split("."))


class Action(str, Enum):
    """What the invocation should do."""

    CREATE = "create"
    DESTROY = "destroy"


class MachineSizing(BaseModel):
    """Machine sizing passed to the provider on create."""

    model_config = ConfigDict(frozen=True)

    machine_type: str
    image: str
    region: str = DEFAULT_REGION


class ProvisionRequest(BaseModel):
    """Validated invocation request.

    Attributes:
        action: create or destroy.
        owner: Repository owner (user or organization).
        repo: Repository name.
        runner_label: Label (and name) of the runner and the VM.
        sizing: Machine sizing (create only).
        root_password: VM root password, used for SSH.
        tags: Tags attached to the VM.
        machine_id: Explicit instance to destroy.
        search_phrase: Phrase used to look up the instance to destroy.
        runner_version: Version of the actions runner agent to install.
        github_token: Bearer token for the GitHub REST API.
        linode_token: Bearer token for the Linode API.
    """

    model_config = ConfigDict(frozen=True)

    action: Action
    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    runner_label: str = DEFAULT_RUNNER_LABEL
    sizing: MachineSizing | None = None
    root_password: str = Field(default="", repr=False)
    tags: frozenset[str] = frozenset()
    machine_id: int | None = None
    search_phrase: str | None = None
    runner_version: str = DEFAULT_RUNNER_VERSION
    github_token: str = Field(default="", repr=False)
    linode_token: str = Field(default="", repr=False)

    @field_validator("tags", mode="before")
    @classmethod
    def parse_tag_string(cls, v: Any) -> Any:
        """Accept the delimited string form as well as any iterable."""
        if isinstance(v, str):
            return parse_tags(v)
        return v

    @field_validator("runner_version")
    @classmethod
    def check_runner_version(cls, v: str) -> str:
        if not is_runner_version(v):
            raise ValueError(f"runner_version must be dotted digits, got {v!r}")
        return v

    @property
    def repo_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"


# Input names (single source of truth), mapped to their descriptions
INPUTS = {
    "action": "Action to perform: create or destroy",
    "github_token": "GitHub token allowed to manage repository runners",
    "linode_token": "Linode API token (falls back to LINODE_TOKEN)",
    "machine_id": "Instance id to destroy",
    "search_phrase": "Phrase matching the label or a tag of the instance to destroy",
    "runner_label": "Runner label and VM label (default: self-hosted)",
    "root_password": "Root password for the new VM",
    "machine_type": "Linode plan, e.g. g6-standard-1",
    "image": "Linode image, e.g. linode/ubuntu22.04",
    "region": "Linode region (default: us-east)",
    "tags": "Comma-separated VM tags",
    "organization": "Repository owner",
    "repo_name": "Repository name",
    "runner_version": "actions/runner release to install",
}

REQUIRED_INPUTS = ["action", "organization", "repo_name"]
REQUIRED_CREATE_INPUTS = ["machine_type", "image", "root_password"]


def parse_tags(raw: str | None) -> frozenset[str]:
    """Parse a comma-separated tag string into a set of trimmed, non-empty tags.

    Example:
        parse_tags("a, b ,c") == frozenset({"a", "b", "c"})
        parse_tags("") == frozenset()
    """
    if not raw:
        return frozenset()
    return frozenset(tag.strip() for tag in raw.split(",") if tag.strip())


def input_env_var(name: str) -> str:
    """Environment variable carrying an action input (INPUT_<NAME>)."""
    return f"INPUT_{name.replace(' ', '_').upper()}"


def inputs_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect known inputs from INPUT_* environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Mapping of input name to trimmed value, only for inputs that are set.
    """
    if environ is None:
        environ = os.environ

    bag: dict[str, str] = {}
    for name in INPUTS:
        value = environ.get(input_env_var(name))
        if value is not None and value.strip():
            bag[name] = value.strip()

    if "linode_token" not in bag and environ.get("LINODE_TOKEN"):
        bag["linode_token"] = environ["LINODE_TOKEN"].strip()
    return bag


def load_config_file(path: str | Path) -> dict[str, str]:
    """Load a configuration bag from a JSON or YAML file.

    Raises:
        ConfigurationError: If the file cannot be read or is not a mapping.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text()
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e

    try:
        if config_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot parse config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    bag: dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, list):
            value = ",".join(str(v) for v in value)
        bag[str(key)] = str(value)
    return bag


def resolve_request(bag: Mapping[str, str]) -> ProvisionRequest:
    """Validate a configuration bag and build a ProvisionRequest.

    Args:
        bag: String-valued options keyed by input name (see INPUTS).

    Returns:
        The validated request.

    Raises:
        ConfigurationError: Naming every missing or invalid field.
    """
    values = {k: v.strip() for k, v in bag.items() if isinstance(v, str) and v.strip()}

    missing = [name for name in REQUIRED_INPUTS if name not in values]
    invalid: list[str] = []

    action_raw = values.get("action", "").lower()
    if action_raw and action_raw not in {a.value for a in Action}:
        invalid.append("action")

    if action_raw == Action.CREATE.value:
        missing.extend(name for name in REQUIRED_CREATE_INPUTS if name not in values)
    elif action_raw == Action.DESTROY.value:
        if "machine_id" not in values and "search_phrase" not in values:
            missing.append("machine_id|search_phrase")
        if "machine_id" in values and not values["machine_id"].isdigit():
            invalid.append("machine_id")

    if "runner_version" in values and not is_runner_version(values["runner_version"]):
        invalid.append("runner_version")

    if missing or invalid:
        parts = []
        if missing:
            parts.append(f"missing required input(s): {', '.join(missing)}")
        if invalid:
            parts.append(f"invalid input(s): {', '.join(invalid)}")
        if "action" in invalid:
            parts.append('action must be "create" or "destroy"')
        raise ConfigurationError("; ".join(parts), fields=missing + invalid)

    sizing = None
    if action_raw == Action.CREATE.value:
        sizing = MachineSizing(
            machine_type=values["machine_type"],
            image=values["image"],
            region=values.get("region", DEFAULT_REGION),
        )

    try:
        return ProvisionRequest(
            action=Action(action_raw),
            owner=values["organization"],
            repo=values["repo_name"],
            runner_label=values.get("runner_label", DEFAULT_RUNNER_LABEL),
            sizing=sizing,
            root_password=values.get("root_password", ""),
            tags=values.get("tags", ""),
            machine_id=values.get("machine_id"),
            search_phrase=values.get("search_phrase"),
            runner_version=values.get("runner_version", DEFAULT_RUNNER_VERSION),
            github_token=values.get("github_token", ""),
            linode_token=values.get("linode_token", ""),
        )
    except ValidationError as e:
        fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(f"Invalid configuration: {e}", fields=fields) from e
