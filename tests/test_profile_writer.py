"""Tests for writing credentials into an AWS CLI profile."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from rolehop.errors import InvalidCredentialError, ProfileWriteError
from rolehop.models import Credential
from rolehop.profile_writer import DEFAULT_PROFILE_NAME, ProfileWriter, SubprocessExecutor

from .conftest import ROLE_A


@pytest.fixture
def credential():
    return Credential(
        access_key_id="access-key-id",
        secret_access_key="secret-access-key",
        session_token="session-token",
        role_arn=ROLE_A,
    )


@pytest.fixture
def executor():
    return MagicMock()


class TestPublish:
    """Test the aws configure set calls."""

    def test_writes_all_fields(self, credential, executor):
        writer = ProfileWriter(executor=executor, profile_name="testing-profile")

        writer.publish(credential, "eu-west-1")

        calls = [call.args for call in executor.execute.call_args_list]
        assert calls == [
            ("aws", "configure", "set", "aws_access_key_id", "access-key-id", "--profile", "testing-profile"),
            ("aws", "configure", "set", "aws_secret_access_key", "secret-access-key", "--profile", "testing-profile"),
            ("aws", "configure", "set", "aws_session_token", "session-token", "--profile", "testing-profile"),
            ("aws", "configure", "set", "region", "eu-west-1", "--profile", "testing-profile"),
        ]

    def test_default_profile_name(self, credential, executor):
        writer = ProfileWriter(executor=executor)

        writer.publish(credential, "eu-west-1")

        assert writer.profile_name == DEFAULT_PROFILE_NAME
        assert executor.execute.call_args.args[-1] == DEFAULT_PROFILE_NAME


class TestInvalidCredentials:
    """Incomplete credentials are rejected before anything is written."""

    def test_no_credentials(self, executor):
        writer = ProfileWriter(executor=executor)

        with pytest.raises(InvalidCredentialError):
            writer.publish(None, "eu-west-1")

        executor.execute.assert_not_called()

    @pytest.mark.parametrize("field", ["access_key_id", "secret_access_key", "session_token"])
    def test_missing_field(self, credential, executor, field):
        incomplete = Credential(
            access_key_id=None if field == "access_key_id" else credential.access_key_id,
            secret_access_key=None if field == "secret_access_key" else credential.secret_access_key,
            session_token=None if field == "session_token" else credential.session_token,
        )
        writer = ProfileWriter(executor=executor)

        with pytest.raises(InvalidCredentialError) as exc_info:
            writer.publish(incomplete, "eu-west-1")

        assert exc_info.value.missing == [field]
        executor.execute.assert_not_called()


class TestWriteFailures:
    """Failures of the aws CLI surface as ProfileWriteError."""

    def test_command_failure(self, credential, executor):
        executor.execute.side_effect = subprocess.CalledProcessError(
            255, ["aws", "configure", "set", "aws_access_key_id", "access-key-id"], stderr=b"boom"
        )
        writer = ProfileWriter(executor=executor)

        with pytest.raises(ProfileWriteError) as exc_info:
            writer.publish(credential, "eu-west-1")

        assert exc_info.value.step == "setting access key"
        assert "255" in str(exc_info.value)
        assert "boom" in str(exc_info.value)
        assert executor.execute.call_count == 1

    def test_secret_not_in_error(self, credential, executor):
        """The failing command line carries the secret; it must not reach the error."""
        executor.execute.side_effect = [
            b"",
            subprocess.CalledProcessError(
                1, ["aws", "configure", "set", "aws_secret_access_key", "secret-access-key"]
            ),
        ]
        writer = ProfileWriter(executor=executor)

        with pytest.raises(ProfileWriteError) as exc_info:
            writer.publish(credential, "eu-west-1")

        assert "secret-access-key" not in str(exc_info.value)
        assert exc_info.value.__cause__ is None

    def test_aws_cli_missing(self, credential, executor):
        executor.execute.side_effect = FileNotFoundError(2, "No such file or directory", "aws")
        writer = ProfileWriter(executor=executor)

        with pytest.raises(ProfileWriteError) as exc_info:
            writer.publish(credential, "eu-west-1")

        assert "No such file or directory" in str(exc_info.value)


class TestSubprocessExecutor:
    @patch("subprocess.run")
    def test_execute(self, mock_run):
        mock_run.return_value = MagicMock(stdout=b"ok")

        output = SubprocessExecutor().execute("aws", "configure", "list")

        mock_run.assert_called_once_with(["aws", "configure", "list"], check=True, capture_output=True)
        assert output == b"ok"
