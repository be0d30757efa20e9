"""Tests for the Parameter Store upload CLI."""

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from click.testing import CliRunner

from scripts import upload_env_to_parameter_store as upload_script


@pytest.fixture
def ssm(monkeypatch):
    client = MagicMock()
    client.put_parameter.return_value = {"Version": 1}
    monkeypatch.setattr(upload_script.boto3, "client", lambda service: client)
    return client


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / ".env"
    path.write_text(
        "SUPABASE_URL=https://x.supabase.co\n"
        "SUPABASE_ANON_KEY=anon-key-value\n"
        "SITE_URL=https://app.example.com\n"
        "UNRELATED=ignored\n"
    )
    return str(path)


def not_found(name):
    return ClientError(
        {"Error": {"Code": "ParameterNotFound", "Message": name}}, "GetParameter"
    )


class TestUpload:
    """Tests for the upload command."""

    def test_uploads_known_settings(self, ssm, env_file):
        """Only known settings are written; keys become SecureString."""
        result = CliRunner().invoke(upload_script.cli, ["upload", "--env-file", env_file])

        assert result.exit_code == 0, result.output
        calls = {c.kwargs["Name"]: c.kwargs for c in ssm.put_parameter.call_args_list}
        assert set(calls) == {
            "/monifly/supabase-url",
            "/monifly/supabase-anon-key",
            "/monifly/site-url",
        }
        assert calls["/monifly/supabase-anon-key"]["Type"] == "SecureString"
        assert calls["/monifly/supabase-url"]["Type"] == "String"
        assert calls["/monifly/site-url"]["Value"] == "https://app.example.com"

    def test_dry_run_masks_secrets(self, ssm, env_file):
        """A dry run writes nothing and hides secure values."""
        result = CliRunner().invoke(
            upload_script.cli, ["upload", "--env-file", env_file, "--dry-run"]
        )

        assert result.exit_code == 0
        ssm.put_parameter.assert_not_called()
        assert "anon-k..." in result.output
        assert "anon-key-value" not in result.output

    def test_custom_prefix(self, ssm, env_file):
        """The prefix option changes where values go."""
        CliRunner().invoke(
            upload_script.cli, ["--prefix", "/monifly-dev/", "upload", "--env-file", env_file]
        )
        names = [c.kwargs["Name"] for c in ssm.put_parameter.call_args_list]
        assert all(name.startswith("/monifly-dev/") for name in names)

    def test_missing_required(self, ssm, tmp_path):
        """Uploads stop when the Supabase URL or anon key is absent."""
        path = tmp_path / ".env"
        path.write_text("SITE_URL=https://app.example.com\n")

        result = CliRunner().invoke(upload_script.cli, ["upload", "--env-file", str(path)])

        assert result.exit_code == 1
        ssm.put_parameter.assert_not_called()

    def test_missing_env_file(self, ssm, tmp_path):
        """A missing .env file is an error."""
        result = CliRunner().invoke(
            upload_script.cli, ["upload", "--env-file", str(tmp_path / "nope.env")]
        )
        assert result.exit_code == 1


class TestVerify:
    """Tests for the verify command."""

    def test_optional_settings_may_be_missing(self, ssm):
        """Only required settings fail verification."""

        def get_parameter(Name, WithDecryption):
            if Name.endswith(("supabase-url", "supabase-anon-key")):
                return {"Parameter": {"Version": 3}}
            raise not_found(Name)

        ssm.get_parameter.side_effect = get_parameter
        result = CliRunner().invoke(upload_script.cli, ["verify"])

        assert result.exit_code == 0
        assert "/monifly/supabase-url exists (version 3)" in result.output

    def test_required_missing(self, ssm):
        """A missing anon key fails verification."""

        def get_parameter(Name, WithDecryption):
            if Name.endswith("supabase-anon-key"):
                raise not_found(Name)
            return {"Parameter": {"Version": 1}}

        ssm.get_parameter.side_effect = get_parameter
        result = CliRunner().invoke(upload_script.cli, ["verify"])

        assert result.exit_code == 1
        assert "/monifly/supabase-anon-key not found (required)" in result.output
