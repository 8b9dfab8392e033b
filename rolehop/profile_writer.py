"""Publishes assumed credentials as a named AWS CLI profile.

The profile is written with ``aws configure set`` so that the AWS CLI owns the
file format and location of ``~/.aws/credentials`` and ``~/.aws/config``.
"""

import subprocess
from typing import Optional, Protocol

import structlog

from .errors import InvalidCredentialError, ProfileWriteError
from .models import Credential

logger = structlog.get_logger(__name__)

DEFAULT_PROFILE_NAME = "rolehop-jump-credentials"


def _decode(output: Optional[bytes]) -> str:
    if not output:
        return ""
    if isinstance(output, bytes):
        return output.decode("utf-8", errors="replace").strip()
    return str(output).strip()


class CommandExecutor(Protocol):
    def execute(self, name: str, *args: str) -> bytes: ...


class SubprocessExecutor:
    """Runs commands with subprocess, raising on a non-zero exit."""

    def execute(self, name: str, *args: str) -> bytes:
        result = subprocess.run([name, *args], check=True, capture_output=True)
        return result.stdout


class ProfileWriter:
    """Writes a credential and region into an AWS CLI profile.

    Attributes:
        profile_name: Name of the AWS profile to (over)write
    """

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        profile_name: str = DEFAULT_PROFILE_NAME,
    ):
        self.executor = executor or SubprocessExecutor()
        self.profile_name = profile_name

    def publish(self, credential: Optional[Credential], region: str) -> None:
        """Write ``credential`` and ``region`` into the profile.

        Args:
            credential: Credential to publish
            region: Region stored alongside the credential

        Raises:
            InvalidCredentialError: If the credential is missing or incomplete;
                nothing is written in that case
            ProfileWriteError: If any ``aws configure set`` call fails
        """
        if credential is None:
            raise InvalidCredentialError(["credential"])

        missing = credential.missing_fields()
        if missing:
            raise InvalidCredentialError(missing)

        steps = [
            ("aws_access_key_id", credential.access_key_id, "setting access key"),
            ("aws_secret_access_key", credential.secret_access_key, "setting secret key"),
            ("aws_session_token", credential.session_token, "setting session token"),
            ("region", region, "setting region"),
        ]

        for key, value, desc in steps:
            try:
                self.executor.execute("aws", "configure", "set", key, value, "--profile", self.profile_name)
            except subprocess.CalledProcessError as e:
                # str(e) includes the command line, which carries the secret value
                reason = f"aws exited with status {e.returncode}: {_decode(e.stderr)}"
                logger.error("Failed to write AWS profile", step=desc, profile=self.profile_name, reason=reason)
                raise ProfileWriteError(desc, reason) from None
            except OSError as e:
                logger.error("Failed to write AWS profile", step=desc, profile=self.profile_name, reason=str(e))
                raise ProfileWriteError(desc, str(e)) from e

        logger.debug(
            "AWS credentials updated",
            profile=self.profile_name,
            role_arn=credential.role_arn,
        )
