from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Credential:
    """Temporary STS credential returned by a single role assumption.

    Fields are optional so that an incomplete response reaches the profile
    writer, which rejects it before anything is written.
    """

    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    session_token: Optional[str]
    expiration: Optional[datetime] = None
    role_arn: str = ""

    @classmethod
    def from_sts(cls, credentials: Dict[str, Any], role_arn: str = "") -> "Credential":
        """Build a Credential from the ``Credentials`` block of an AssumeRole response."""
        return cls(
            access_key_id=credentials.get("AccessKeyId"),
            secret_access_key=credentials.get("SecretAccessKey"),
            session_token=credentials.get("SessionToken"),
            expiration=credentials.get("Expiration"),
            role_arn=role_arn,
        )

    def missing_fields(self) -> list[str]:
        fields = {
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
            "session_token": self.session_token,
        }
        return [name for name, value in fields.items() if not value]

    def __repr__(self) -> str:
        expires = self.expiration.isoformat() if self.expiration else None
        return f"Credential(role_arn={self.role_arn!r}, access_key_id={self.access_key_id!r}, expiration={expires!r})"


@dataclass
class ChainSettings:
    """Everything the refresh loop needs, whether it came from flags or a config file."""

    refresh: int
    roles: list[str]
    usable: list[str]
    region: str
