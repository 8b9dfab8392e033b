"""Chained STS role assumption.

Each assumption is signed by the identity produced by the previous one. The
chain starts as the process's ambient AWS identity and, after every successful
``assume``, swaps its STS client for one built from the new credentials.
"""

import socket
import time
from typing import Any, Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import AssumeRoleError, ConfigError, IdentityError
from ..models import Credential

logger = structlog.get_logger(__name__)

#: Validity requested for every assumed credential, in seconds
DEFAULT_SESSION_DURATION = 15 * 60

SESSION_NAME_PREFIX = "rolehop"


class AuthorityChain:
    """Holds the STS client used for the next role assumption.

    Usage:
        chain = AuthorityChain(region="eu-west-1")

        # Signed by the ambient identity
        first = chain.assume("arn:aws:iam::111111111111:role/jump")

        # Signed by the "jump" role assumed above
        second = chain.assume("arn:aws:iam::222222222222:role/target")

    Attributes:
        region: AWS region used for every STS client in the chain
        session_duration: DurationSeconds passed to every AssumeRole call
    """

    def __init__(
        self,
        region: str,
        session_duration: int = DEFAULT_SESSION_DURATION,
        client: Optional[Any] = None,
    ):
        """Initialize the chain.

        Args:
            region: AWS region for STS clients
            session_duration: Lifetime of assumed credentials in seconds
            client: Starting STS client (defaults to the ambient credential chain)

        Raises:
            ConfigError: If no STS client can be built for ``region``
        """
        self.region = region
        self.session_duration = session_duration

        if client is None:
            try:
                client = boto3.Session(region_name=region).client("sts")
            except BotoCoreError as e:
                logger.error("Failed to create STS client", region=region, error=str(e))
                raise ConfigError(
                    f"Unable to create STS client for region {region!r}",
                    suggestion="Use a region name such as eu-west-1",
                    details=str(e),
                ) from e
        self._client = client

        logger.debug(
            "AuthorityChain initialized",
            region=region,
            session_duration=session_duration,
        )

    @property
    def client(self) -> Any:
        return self._client

    def _generate_session_name(self) -> str:
        """Generate a unique session name for CloudTrail auditing.

        Returns:
            Session name in format: "rolehop-{hostname}-{timestamp}"
        """
        try:
            hostname = socket.gethostname()
        except OSError:
            hostname = "unknown"

        # AWS session names are limited to 64 characters
        hostname = hostname[:44]

        timestamp = int(time.time())
        return f"{SESSION_NAME_PREFIX}-{hostname}-{timestamp}"

    def _client_for(self, credential: Credential) -> Any:
        """Create an STS client authenticated as ``credential``."""
        session = boto3.Session(
            aws_access_key_id=credential.access_key_id,
            aws_secret_access_key=credential.secret_access_key,
            aws_session_token=credential.session_token,
            region_name=self.region,
        )
        return session.client("sts")

    def assume(self, role_arn: str) -> Credential:
        """Assume ``role_arn`` as the current authority and adopt the result.

        Args:
            role_arn: ARN of the IAM role to assume

        Returns:
            The temporary credential issued for the role

        Raises:
            AssumeRoleError: If STS rejects the call or returns an incomplete
                credential. The held client is left unchanged.
        """
        session_name = self._generate_session_name()

        logger.debug("Assuming IAM role", role_arn=role_arn, session_name=session_name)

        try:
            response = self._client.assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                DurationSeconds=self.session_duration,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "Failed to assume role",
                role_arn=role_arn,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise AssumeRoleError(role_arn, e) from e

        credential = Credential.from_sts(response.get("Credentials") or {}, role_arn=role_arn)
        missing = credential.missing_fields()
        if missing:
            logger.error("STS response is missing credential fields", role_arn=role_arn, missing=missing)
            raise AssumeRoleError(role_arn, ValueError(f"missing credential fields: {', '.join(missing)}"))

        try:
            next_client = self._client_for(credential)
        except BotoCoreError as e:
            raise AssumeRoleError(role_arn, e) from e

        logger.info(
            "Role assumed successfully",
            role_arn=role_arn,
            expires_at=credential.expiration.isoformat() if credential.expiration else None,
        )
        logger.debug("Replacing client", role_arn=role_arn)

        self._client = next_client

        return credential

    def identity(self) -> str:
        """Return the ARN of the identity currently held by the chain.

        Raises:
            IdentityError: If STS cannot identify the caller
        """
        try:
            response = self._client.get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            raise IdentityError("Unable to get caller identity", details=str(e)) from e

        return response["Arn"]
