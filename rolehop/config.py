"""
Configuration File Schema and Loader

Defines the pydantic models for the rolehop configuration file and turns the
selected profile into the settings used by the refresh loop.

Example:
    {
      "select_profile": "simple",
      "profiles": [
        {
          "name": "simple",
          "region": "eu-west-1",
          "chain": {
            "ttl": 5,
            "use": [
              {"arn": "arn:aws:iam::111111111111:role/jump"},
              {"arn": "arn:aws:iam::222222222222:role/admin", "skip": true}
            ]
          }
        }
      ]
    }

A role entry with ``skip`` set carries meaningful permissions: the chain is
allowed to stop on it. ``ttl`` is the refresh interval in minutes.

Files ending in ``.hcl`` are read as HCL with the same structure, one
``profile "<name>"`` block per profile and one ``use`` block per role:

    select_profile = profile.simple

    profile "simple" {
      region = "eu-west-1"
      chain {
        ttl = 5
        use {
          arn = "arn:aws:iam::111111111111:role/jump"
        }
      }
    }

``select_profile`` may be a quoted name or a ``profile.<name>`` reference.

Module: config
"""

import json
import re
from pathlib import Path
from typing import Any, List, Optional, Union

import hcl2
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .models import ChainSettings

logger = structlog.get_logger(__name__)

DEFAULT_REGION = "eu-west-1"
DEFAULT_REFRESH_MINUTES = 12
MIN_REFRESH_MINUTES = 1


class RoleEntry(BaseModel):
    """A single role in the chain"""

    arn: str = Field(..., min_length=1, description="IAM role ARN to assume")
    skip: bool = Field(False, description="Role carries meaningful permissions; the chain may stop here")

    model_config = ConfigDict(extra="forbid")


class Chain(BaseModel):
    """Ordered roles assumed one after another"""

    ttl: int = Field(0, description="Refresh interval in minutes (0 means default)")
    use: List[RoleEntry] = Field(default_factory=list, description="Roles in assumption order")

    model_config = ConfigDict(extra="forbid")


class Profile(BaseModel):
    """Named chain definition"""

    name: str = Field(..., description="Profile name referenced by select_profile")
    region: str = Field("", description="AWS region for STS and the written profile")
    chain: Optional[Chain] = Field(None, description="Role chain for this profile")

    model_config = ConfigDict(extra="forbid")


class ConfigFile(BaseModel):
    """Top-level configuration file"""

    select_profile: str = Field(..., description="Name of the profile to run")
    profiles: List[Profile] = Field(default_factory=list, description="Available profiles")

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> ChainSettings:
        """Collect refresh interval, roles, usable roles and region of the selected profile.

        Raises:
            ConfigError: If no profile is selected
        """
        if not self.select_profile:
            raise ConfigError("select_profile is required", "Set select_profile to one of the profile names")

        settings = ChainSettings(refresh=0, roles=[], usable=[], region=DEFAULT_REGION)

        for profile in self.profiles:
            if profile.name != self.select_profile:
                logger.debug(
                    "Skipping profile parsing",
                    profile=profile.name,
                    reason="different profile selected",
                )
                continue

            if profile.chain is None:
                logger.debug("Skipping profile parsing", profile=profile.name, reason="no chain defined")
                continue

            settings.refresh = profile.chain.ttl
            settings.region = profile.region or DEFAULT_REGION

            for role in profile.chain.use:
                settings.roles.append(role.arn)
                if role.skip:
                    settings.usable.append(role.arn)

        return settings


def _set_defaults(config: ConfigFile) -> None:
    for profile in config.profiles:
        if not profile.region:
            logger.debug("Setting default region", profile=profile.name, region=DEFAULT_REGION)
            profile.region = DEFAULT_REGION

        if profile.chain is None:
            continue

        if profile.chain.ttl == 0:
            logger.debug("Setting default ttl", profile=profile.name, ttl=DEFAULT_REFRESH_MINUTES)
            profile.chain.ttl = DEFAULT_REFRESH_MINUTES


_PROFILE_REFERENCE = re.compile(r"\$\{profile\.([A-Za-z0-9_-]+)\}")


def _unquote(value: Any) -> Any:
    """Strip literal quotes python-hcl2 may keep around strings and block labels."""
    if isinstance(value, str):
        if len(value) >= 2 and value[0] == value[-1] == '"':
            return value[1:-1]
        return value
    if isinstance(value, list):
        return [_unquote(item) for item in value]
    if isinstance(value, dict):
        # dunder keys are parser metadata
        return {_unquote(k): _unquote(v) for k, v in value.items() if not str(k).startswith("__")}
    return value


def _single_block(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def from_hcl(data: dict) -> dict:
    """Reshape python-hcl2 output into the JSON document layout.

    Blocks come back as lists of dicts: ``profile`` blocks are keyed by their
    label and ``chain`` is a one-element list.
    """
    data = _unquote(data)
    document = {}

    if "select_profile" in data:
        selected = data["select_profile"]
        if isinstance(selected, str):
            match = _PROFILE_REFERENCE.fullmatch(selected)
            if match:
                selected = match.group(1)
        document["select_profile"] = selected

    profiles = []
    for block in data.get("profile", []):
        for name, body in block.items():
            profile = {"name": name, **{k: v for k, v in body.items() if k != "chain"}}
            chain = _single_block(body.get("chain"))
            if chain is not None:
                profile["chain"] = {**chain, "use": list(chain.get("use", []))}
            profiles.append(profile)
    document["profiles"] = profiles

    unknown = set(data) - {"select_profile", "profile"}
    for key in sorted(unknown):
        document[key] = data[key]

    return document


def _decode(config_path: Path, content: str) -> dict:
    if config_path.suffix == ".hcl":
        try:
            return from_hcl(hcl2.loads(content))
        except Exception as e:
            raise ConfigError(f"Invalid HCL in configuration file: {config_path}", details=str(e)) from e

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in configuration file: {config_path}", details=str(e)) from e


def parse_file(path: Union[str, Path]) -> ConfigFile:
    """
    Read, validate and apply defaults to a configuration file

    Args:
        path: Path to the configuration file, HCL when it ends in ``.hcl`` and JSON otherwise

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file cannot be read, cannot be decoded or does not match the schema
    """
    config_path = Path(path)

    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {config_path}", details=str(e)) from e

    data = _decode(config_path, content)

    try:
        config = ConfigFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Invalid configuration file: {config_path}",
            f"{e.error_count()} validation error(s)",
            details=str(e),
        ) from e

    _set_defaults(config)

    return config


def load_settings(path: Union[str, Path]) -> ChainSettings:
    """Parse ``path`` and return the settings of its selected profile."""
    return parse_file(path).to_settings()


def clamp_refresh(minutes: int) -> int:
    """Raise refresh intervals below the supported minimum to one minute."""
    if minutes < MIN_REFRESH_MINUTES:
        logger.warning("Refresh interval too low, setting to 1 minute", requested=minutes)
        return MIN_REFRESH_MINUTES
    return minutes
