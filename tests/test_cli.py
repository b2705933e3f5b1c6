from click.testing import CliRunner

import n8ndeployer.cli as cli_module


class FakeDeployer:
    captured = {}

    def __init__(self, **kwargs):
        FakeDeployer.captured = kwargs

    def run(self):
        return 0

    def backup(self):
        return 0

    def list_backups(self):
        FakeDeployer.captured["listed"] = True
        return 0


class RootHost:
    def __init__(self, **_kwargs):
        pass

    def ensure_privileges(self):
        return None


def test_install_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / ".n8ndeployer.yml"
    config_file.write_text(
        "domain: config.example.com\n"
        "email: admin@example.com\n"
        "auth_user: admin\n"
        "ip_allowlist: ['203.0.113.0/24']\n"
        f"base_dir: {tmp_path / 'n8n'}\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(cli_module, "N8NDeployer", FakeDeployer)
    monkeypatch.setattr(cli_module, "HostService", RootHost)
    monkeypatch.setenv("N8N_AUTH_PASSWORD", "secret")

    result = CliRunner().invoke(
        cli_module.main,
        ["--config", str(config_file), "install", "--domain", "cli.example.com", "--skip-upgrade"],
    )

    assert result.exit_code == 0, result.output
    config = FakeDeployer.captured["config"]
    assert config.domain == "cli.example.com"
    assert config.auth_password == "secret"
    assert config.ip_allowlist == ("203.0.113.0/24",)
    assert FakeDeployer.captured["layout"].base_dir == str(tmp_path / "n8n")
    assert FakeDeployer.captured["skip_upgrade"] is True
    assert FakeDeployer.captured["dry_run"] is False


def test_install_prompts_for_missing_values(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "N8NDeployer", FakeDeployer)
    monkeypatch.setattr(cli_module, "HostService", RootHost)
    monkeypatch.delenv("N8N_AUTH_PASSWORD", raising=False)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        ["install"],
        input="n8n.example.com\nadmin@example.com\nadmin\nsecret\nsecret\n\n",
    )

    assert result.exit_code == 0, result.output
    config = FakeDeployer.captured["config"]
    assert config.domain == "n8n.example.com"
    assert config.auth_password == "secret"
    assert config.ip_allowlist == ()
    assert "secret" not in result.output


def test_install_requires_root_before_prompting(tmp_path, monkeypatch):
    class NonRootHost(RootHost):
        def ensure_privileges(self):
            raise cli_module.DeployerError("This command must be run as root.")

    monkeypatch.setattr(cli_module, "N8NDeployer", FakeDeployer)
    monkeypatch.setattr(cli_module, "HostService", NonRootHost)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["install"])

    assert result.exit_code == 1
    assert "must be run as root" in result.output
    assert "Enter your domain" not in result.output


def test_render_rejects_invalid_allowlist(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "N8NDeployer", FakeDeployer)
    monkeypatch.setenv("N8N_AUTH_PASSWORD", "secret")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(
        cli_module.main,
        [
            "render",
            "--domain",
            "n8n.example.com",
            "--email",
            "admin@example.com",
            "--auth-user",
            "admin",
            "--allowlist",
            "203.0.113.0/24,not-an-ip",
        ],
    )

    assert result.exit_code == 1
    assert "Invalid allowlist entry" in result.output


def test_backup_command_uses_base_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "N8NDeployer", FakeDeployer)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["backup", "--base-dir", str(tmp_path / "n8n")])

    assert result.exit_code == 0
    assert FakeDeployer.captured["layout"].data_dir == str(tmp_path / "n8n" / "data")


def test_backup_list_does_not_create_archive(tmp_path, monkeypatch):
    monkeypatch.setattr(cli_module, "N8NDeployer", FakeDeployer)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["backup", "--list", "--base-dir", str(tmp_path / "n8n")])

    assert result.exit_code == 0
    assert FakeDeployer.captured["listed"] is True
