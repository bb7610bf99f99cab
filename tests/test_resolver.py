from __future__ import annotations

from pathlib import Path

import pytest

import fail2ban_jail_planner as planner


def test_first_existing_candidate_wins(services, log_root: Path, touch) -> None:
    ssh = services[0]
    touch(log_root / "auth.log")
    resolution = planner.resolve_log_path(ssh)
    assert resolution == planner.LogResolution(str(log_root / "auth.log"), planner.LOG_FOUND)


def test_candidates_checked_in_priority_order(services, log_root: Path, touch) -> None:
    ssh = services[0]
    touch(log_root / "secure")
    touch(log_root / "auth.log")
    assert planner.resolve_log_path(ssh).path == str(log_root / "secure")


def test_later_candidate_used_when_earlier_missing(services, log_root: Path, touch) -> None:
    database = services[2]
    touch(log_root / "mysql" / "error.log")
    resolution = planner.resolve_log_path(database)
    assert resolution.path == str(log_root / "mysql" / "error.log")
    assert resolution.status == planner.LOG_FOUND


def test_directory_at_candidate_path_is_not_a_log(services, log_root: Path) -> None:
    ssh = services[0]
    (log_root / "secure").mkdir(parents=True)
    resolution = planner.resolve_log_path(ssh, ensure_parent=False)
    assert resolution.status == planner.LOG_PENDING


def test_missing_logs_fall_back_to_pending_path(services, log_root: Path) -> None:
    web = services[1]
    resolution = planner.resolve_log_path(web)
    assert resolution == planner.LogResolution(str(log_root / "httpd" / "error_log"), planner.LOG_PENDING)
    assert resolution.resolved
    assert (log_root / "httpd").is_dir()
    assert not (log_root / "httpd" / "error_log").exists()


def test_pending_resolution_can_skip_directory_creation(services, log_root: Path) -> None:
    resolution = planner.resolve_log_path(services[1], ensure_parent=False)
    assert resolution.status == planner.LOG_PENDING
    assert not (log_root / "httpd").exists()


def test_resolution_survives_failing_oracle_and_uncreatable_parent(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    service = planner.ServiceSpec(
        name="ssh-auth",
        jail="sshd",
        filter_name="sshd",
        candidates=(str(blocker / "secure"), str(blocker / "auth.log")),
        fallback=str(blocker / "nested" / "secure"),
    )

    def denied(path: str) -> bool:
        raise PermissionError(13, "Permission denied", path)

    resolution = planner.resolve_log_path(service, exists=denied)
    assert resolution == planner.LogResolution(str(blocker / "nested" / "secure"), planner.LOG_PENDING)


def test_glob_candidate_is_accepted_without_matching_files(tmp_path: Path) -> None:
    pattern = str(tmp_path / "pgsql" / "log" / "postgresql-*.log")
    checked = []
    service = planner.ServiceSpec(
        name="database-auth",
        jail="postgresql",
        filter_name="postgresql",
        candidates=(pattern, str(tmp_path / "postgresql.log")),
        fallback=pattern,
    )

    def oracle(path: str) -> bool:
        checked.append(path)
        return True

    resolution = planner.resolve_log_path(service, exists=oracle)
    assert resolution == planner.LogResolution(pattern, planner.LOG_GLOB)
    assert checked == []


def test_glob_with_no_matches_logs_a_warning(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    pattern = str(tmp_path / "postgresql-*.log")
    service = planner.ServiceSpec(
        name="database-auth", jail="postgresql", filter_name="postgresql",
        candidates=(pattern,), fallback=pattern,
    )
    planner.resolve_log_path(service)
    assert "matches no files yet" in caplog.text


def test_existing_file_before_glob_wins(tmp_path: Path, touch) -> None:
    log = touch(tmp_path / "postgresql.log")
    pattern = str(tmp_path / "postgresql-*.log")
    service = planner.ServiceSpec(
        name="database-auth", jail="postgresql", filter_name="postgresql",
        candidates=(str(log), pattern), fallback=str(log),
    )
    assert planner.resolve_log_path(service).status == planner.LOG_FOUND


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/var/lib/pgsql/16/data/log/postgresql-*.log", True),
        ("/var/log/httpd/access_log.?", True),
        ("/var/log/secure.[0-9]", True),
        ("/var/log/secure", False),
    ],
)
def test_is_glob(path: str, expected: bool) -> None:
    assert planner.is_glob(path) is expected
