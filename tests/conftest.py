from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

import fail2ban_jail_planner as planner

STATUS_OUTPUT = "Status\n|- Number of jail:\t1\n`- Jail list:\tsshd\n"


@pytest.fixture(autouse=True)
def reset_planner_logger():
    yield
    log = logging.getLogger(planner.LOGGER_NAME)
    for handler in log.handlers[:]:
        log.removeHandler(handler)
        handler.close()
    log.setLevel(logging.NOTSET)


@pytest.fixture
def log_root(tmp_path: Path) -> Path:
    return tmp_path / "var" / "log"


@pytest.fixture
def services(log_root: Path) -> tuple[planner.ServiceSpec, ...]:
    return (
        planner.ServiceSpec(
            name="ssh-auth",
            jail="sshd",
            filter_name="sshd",
            candidates=(str(log_root / "secure"), str(log_root / "auth.log")),
            fallback=str(log_root / "secure"),
            keywords=("sshd",),
        ),
        planner.ServiceSpec(
            name="web-auth",
            jail="apache-auth",
            filter_name="apache-auth",
            candidates=(str(log_root / "httpd" / "error_log"), str(log_root / "apache2" / "error.log")),
            fallback=str(log_root / "httpd" / "error_log"),
            keywords=("apache", "nginx"),
        ),
        planner.ServiceSpec(
            name="database-auth",
            jail="mysqld-auth",
            filter_name="mysqld-auth",
            candidates=(
                str(log_root / "mysql" / "mysqld.log"),
                str(log_root / "mysqld.log"),
                str(log_root / "mysql" / "error.log"),
            ),
            fallback=str(log_root / "mysql" / "mysqld.log"),
            keywords=("mysql",),
        ),
    )


@pytest.fixture
def filter_dir(tmp_path: Path) -> Path:
    path = tmp_path / "filter.d"
    path.mkdir()
    return path


@pytest.fixture
def install_filters(filter_dir: Path) -> Callable[..., None]:
    def _install(*names: str) -> None:
        for name in names:
            (filter_dir / f"{name}.conf").write_text("[Definition]\nfailregex =\n", encoding="utf-8")

    return _install


@pytest.fixture
def touch() -> Callable[[Path], Path]:
    def _touch(path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")
        return path

    return _touch


@pytest.fixture
def config(tmp_path: Path, services, filter_dir: Path) -> planner.Config:
    return planner.Config(
        LOG_FILE=str(tmp_path / "planner.log"),
        JAIL_LOCAL=tmp_path / "fail2ban" / "jail.local",
        FILTER_DIR=filter_dir,
        STATUS_ATTEMPTS=3,
        STATUS_BACKOFF=0.0,
        STATUS_TIMEOUT=5.0,
        SERVICES=services,
    )


class FakeDaemon:
    """Stands in for systemctl and fail2ban-client behind subprocess.run."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.reload_returncode = 0
        self.reload_stderr = ""
        self.reload_error: BaseException | None = None
        self.status_responses: list = [(0, STATUS_OUTPUT)]

    @property
    def status_calls(self) -> int:
        return sum(1 for cmd in self.calls if cmd[0] == "fail2ban-client")

    def run(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        if cmd[0] == "systemctl":
            if self.reload_error is not None:
                raise self.reload_error
            returncode, stdout, stderr = self.reload_returncode, "", self.reload_stderr
        else:
            if len(self.status_responses) > 1:
                response = self.status_responses.pop(0)
            else:
                response = self.status_responses[0]
            if isinstance(response, BaseException):
                raise response
            returncode, stdout = response
            stderr = "" if returncode == 0 else "Failed to access socket path"
        if returncode != 0 and kwargs.get("check"):
            raise subprocess.CalledProcessError(returncode, cmd, output=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def fake_daemon(monkeypatch) -> FakeDaemon:
    daemon = FakeDaemon()
    monkeypatch.setattr(planner.subprocess, "run", daemon.run)
    return daemon
