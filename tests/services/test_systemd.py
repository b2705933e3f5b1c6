import subprocess

from n8ndeployer.models import RenderedArtifact
from n8ndeployer.services.systemd import SystemdService


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeFileSystem:
    def __init__(self):
        self.written = []

    def write_artifact(self, artifact):
        self.written.append(artifact)
        return True


def test_install_unit_writes_then_reloads_enables_and_starts():
    calls = []
    filesystem = FakeFileSystem()
    service = SystemdService(logger=None, console=DummyConsole(), filesystem_service=filesystem)
    unit = RenderedArtifact("unit", "/etc/systemd/system/n8n.service", "[Unit]\n", 0o644)

    def run_cmd(cmd, check=True, capture_output=False, **_kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0)

    assert service.install_unit(unit, run_cmd) is True
    assert filesystem.written == [unit]
    assert calls == [
        ["systemctl", "daemon-reload"],
        ["systemctl", "enable", "n8n.service"],
        ["systemctl", "start", "n8n.service"],
    ]

