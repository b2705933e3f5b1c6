import subprocess

import pytest

from n8ndeployer.errors import DeployerError
from n8ndeployer.services.host import HostService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeResponse:
    content = b"-----BEGIN PGP PUBLIC KEY BLOCK-----\n"

    def raise_for_status(self):
        return None


class FakeRequestsModule:
    class RequestException(Exception):
        pass

    def __init__(self):
        self.urls = []

    def get(self, url, **_kwargs):
        self.urls.append(url)
        return FakeResponse()


class FakeRunner:
    def __init__(self, compose_versions=("2.24.5",)):
        self.calls = []
        self.compose_versions = list(compose_versions)

    def __call__(self, cmd, check=True, capture_output=False, **kwargs):
        self.calls.append((cmd, kwargs))
        if cmd[:3] == ["docker", "compose", "version"]:
            current = self.compose_versions.pop(0) if self.compose_versions else None
            if current is None:
                return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="unknown command")
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{current}\n", stderr="")
        if cmd == ["dpkg", "--print-architecture"]:
            return subprocess.CompletedProcess(cmd, 0, stdout="amd64\n", stderr="")
        if cmd == ["lsb_release", "-cs"]:
            return subprocess.CompletedProcess(cmd, 0, stdout="jammy\n", stderr="")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def commands(self):
        return [cmd for cmd, _ in self.calls]


def _service(tmp_path, which=lambda _name: None, geteuid=lambda: 0, requests_module=None):
    return HostService(
        logger=DummyLogger(),
        console=DummyConsole(),
        requests_module=requests_module or FakeRequestsModule(),
        which=which,
        geteuid=geteuid,
        keyring_path=str(tmp_path / "keyrings" / "docker.gpg"),
        sources_list_path=str(tmp_path / "docker.list"),
    )


def test_ensure_privileges_rejects_non_root(tmp_path):
    with pytest.raises(DeployerError, match="must be run as root"):
        _service(tmp_path, geteuid=lambda: 1000).ensure_privileges()


def test_ensure_privileges_accepts_root(tmp_path):
    _service(tmp_path, geteuid=lambda: 0).ensure_privileges()


def test_update_packages_runs_noninteractive_apt(tmp_path):
    runner = FakeRunner()

    _service(tmp_path).update_packages(runner, upgrade=True)

    assert runner.commands() == [["apt-get", "update"], ["apt-get", "upgrade", "-y"]]
    assert all(kwargs["env"] == {"DEBIAN_FRONTEND": "noninteractive"} for _, kwargs in runner.calls)


def test_update_packages_can_skip_upgrade(tmp_path):
    runner = FakeRunner()

    _service(tmp_path).update_packages(runner, upgrade=False)

    assert runner.commands() == [["apt-get", "update"]]


def test_ensure_docker_skips_when_present(tmp_path):
    runner = FakeRunner()
    requests_module = FakeRequestsModule()
    service = _service(tmp_path, which=lambda _name: "/usr/bin/docker", requests_module=requests_module)

    assert service.ensure_docker(runner) is False
    assert runner.calls == []
    assert requests_module.urls == []


def test_ensure_docker_installs_from_docker_repository(tmp_path):
    runner = FakeRunner()
    requests_module = FakeRequestsModule()
    service = _service(tmp_path, requests_module=requests_module)

    assert service.ensure_docker(runner) is True

    assert requests_module.urls == ["https://download.docker.com/linux/ubuntu/gpg"]
    gpg_cmd, gpg_kwargs = runner.calls[0]
    assert gpg_cmd[:3] == ["gpg", "--dearmor", "--yes"]
    assert "BEGIN PGP PUBLIC KEY BLOCK" in gpg_kwargs["input_text"]
    source_line = (tmp_path / "docker.list").read_text(encoding="utf-8")
    assert source_line == (
        f"deb [arch=amd64 signed-by={tmp_path / 'keyrings' / 'docker.gpg'}] "
        "https://download.docker.com/linux/ubuntu jammy stable\n"
    )
    assert ["apt-get", "install", "-y", "docker-ce", "docker-ce-cli", "containerd.io"] in runner.commands()


def test_ensure_compose_skips_when_v2_present(tmp_path):
    runner = FakeRunner(compose_versions=["v2.24.5"])

    assert _service(tmp_path).ensure_compose(runner) is False
    assert ["apt-get", "install", "-y", "docker-compose-plugin"] not in runner.commands()


def test_ensure_compose_installs_plugin_when_missing(tmp_path):
    runner = FakeRunner(compose_versions=[None, "2.27.0"])

    assert _service(tmp_path).ensure_compose(runner) is True
    assert ["apt-get", "install", "-y", "docker-compose-plugin"] in runner.commands()


def test_ensure_compose_fails_when_still_unavailable(tmp_path):
    runner = FakeRunner(compose_versions=["1.29.2", "1.29.2"])

    with pytest.raises(DeployerError, match="Docker Compose v2 is not available"):
        _service(tmp_path).ensure_compose(runner)
