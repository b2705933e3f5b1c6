import subprocess

import pytest

from n8ndeployer.errors import DeployerError
from n8ndeployer.models import DirectoryLayout, ScheduledJob
from n8ndeployer.services.scheduler import CronService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None


class FakeCrontab:
    """Emulates `crontab -l` / `crontab -` for a single user."""

    def __init__(self, content=None):
        self.content = content
        self.writes = 0

    def __call__(self, cmd, check=True, capture_output=False, input_text=None, **_kwargs):
        if cmd == ["crontab", "-l"]:
            if self.content is None:
                return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="no crontab for root\n")
            return subprocess.CompletedProcess(cmd, 0, stdout=self.content, stderr="")
        if cmd == ["crontab", "-"]:
            self.content = input_text
            self.writes += 1
            return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")
        raise AssertionError(f"unexpected command: {cmd}")


def _service() -> CronService:
    return CronService(logger=DummyLogger(), console=None)


def _jobs():
    return CronService.default_jobs(DirectoryLayout(base_dir="/opt/n8n"))


def test_default_jobs_are_nightly_backup_and_weekly_update():
    backup, update = _jobs()

    assert backup.line == "0 3 * * * /opt/n8n/backup_n8n.sh"
    assert update.schedule == "0 4 * * 0"
    assert "apt-get upgrade -y" in update.command


def test_upsert_into_empty_crontab():
    crontab = FakeCrontab()

    assert _service().upsert(_jobs(), crontab) is True

    assert crontab.content == (
        "0 3 * * * /opt/n8n/backup_n8n.sh\n"
        "0 4 * * 0 apt-get update && DEBIAN_FRONTEND=noninteractive apt-get upgrade -y\n"
    )


def test_repeated_upsert_does_not_duplicate_entries():
    crontab = FakeCrontab()
    service = _service()

    service.upsert(_jobs(), crontab)
    first = crontab.content
    assert service.upsert(_jobs(), crontab) is False
    service.upsert(_jobs(), crontab)

    assert crontab.content == first
    assert crontab.writes == 1
    assert crontab.content.count("/opt/n8n/backup_n8n.sh") == 1


def test_upsert_preserves_unrelated_entries_and_comments():
    existing = "MAILTO=ops@example.com\n# certbot\n0 2 * * * certbot renew --quiet\n"
    crontab = FakeCrontab(existing)

    _service().upsert(_jobs(), crontab)

    assert crontab.content.startswith(existing)
    assert crontab.content.count("\n") == 5


def test_upsert_replaces_changed_schedule_in_place():
    crontab = FakeCrontab("30 1 * * * /opt/n8n/backup_n8n.sh\n15 * * * * /usr/local/bin/other\n")

    _service().upsert([ScheduledJob("0 3 * * *", "/opt/n8n/backup_n8n.sh")], crontab)

    assert crontab.content == "0 3 * * * /opt/n8n/backup_n8n.sh\n15 * * * * /usr/local/bin/other\n"


def test_upsert_collapses_duplicates_left_by_older_installs():
    crontab = FakeCrontab("0 3 * * * /opt/n8n/backup_n8n.sh\n0 3 * * * /opt/n8n/backup_n8n.sh\n")

    _service().upsert([ScheduledJob("0 3 * * *", "/opt/n8n/backup_n8n.sh")], crontab)

    assert crontab.content == "0 3 * * * /opt/n8n/backup_n8n.sh\n"


@pytest.mark.parametrize(
    "line, expected",
    [
        ("0 3 * * * /opt/n8n/backup_n8n.sh", ("0 3 * * *", "/opt/n8n/backup_n8n.sh")),
        ("@daily  /usr/bin/true", ("@daily", "/usr/bin/true")),
        ("# 0 3 * * * commented", None),
        ("MAILTO=root", None),
        ("", None),
    ],
)
def test_split_entry(line, expected):
    assert CronService.split_entry(line) == expected


def test_read_raises_on_unexpected_crontab_error():
    def broken(cmd, check=True, capture_output=False, **_kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="crontab: permission denied\n")

    with pytest.raises(DeployerError, match="Could not read crontab"):
        _service().read(broken)


def test_silent_crontab_failure_does_not_wipe_existing_jobs():
    calls = []

    def silent_failure(cmd, check=True, capture_output=False, **_kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="")

    with pytest.raises(DeployerError, match="Could not read crontab"):
        _service().upsert([ScheduledJob("0 3 * * *", "/opt/n8n/backup_n8n.sh")], silent_failure)

    assert ["crontab", "-"] not in calls
