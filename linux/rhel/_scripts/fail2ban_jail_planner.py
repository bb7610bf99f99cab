#!/usr/bin/env python3
"""
Fail2ban Jail Planner
---------------------

Detects which authentication logs and Fail2ban filters exist on an
AlmaLinux/RHEL host, compiles a jail.local that only enables the jails the
host can actually serve, writes it, restarts Fail2ban and reports the active
jail set.

Features:
  • Priority-ordered log path discovery with a canonical fallback per service
  • Filter registry inspection (/etc/fail2ban/filter.d)
  • Deterministic jail.local rendering (same host state -> same bytes)
  • Bounded status polling after the daemon restart
  • Loud failure: on a rejected reload the written config is dumped, not rolled back

Usage:
  sudo ./fail2ban_jail_planner.py --external-ip 203.0.113.7
  ./fail2ban_jail_planner.py --external-ip 203.0.113.7 --dry-run

Version: 1.0.0
"""

import glob
import ipaddress
import logging
import os
import re
import shutil
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import click
import pyfiglet
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

# ----------------------------------------------------------------
# Configuration & Constants
# ----------------------------------------------------------------
APP_NAME: str = "Fail2ban Jail Planner"
VERSION: str = "1.0.0"
LOGGER_NAME: str = "f2b_planner"

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_RELOAD_FAILED: int = 3
EXIT_INTERRUPTED: int = 130

# Loopback plus the three RFC 1918 ranges; the operator address is appended.
FIXED_IGNORE_LIST: Tuple[str, ...] = (
    "127.0.0.1/8",
    "192.168.0.0/16",
    "10.0.0.0/8",
    "172.16.0.0/12",
)

LOG_FOUND: str = "found"
LOG_GLOB: str = "glob"
LOG_PENDING: str = "pending"

REASON_FILTER_UNAVAILABLE: str = "filter-unavailable"
REASON_LOG_UNRESOLVED: str = "log-unresolved"

FILTER_SUFFIXES: Tuple[str, ...] = (".conf", ".local")
DIAGNOSTIC_LIMIT: int = 10
GLOB_CHARS = re.compile(r"[*?\[]")

console: Console = Console()
logger = logging.getLogger(LOGGER_NAME)


class NordColors:
    """Subset of the Nord palette used for operator output."""

    SNOW_STORM_1: str = "#D8DEE9"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"


# ----------------------------------------------------------------
# Data Structures
# ----------------------------------------------------------------
@dataclass(frozen=True)
class ServiceSpec:
    """
    Static description of one monitored service.

    Attributes:
        name: Monitored service identifier (ssh-auth, web-auth, database-auth).
        jail: Section name written to jail.local.
        filter_name: Filter expected in the filter registry.
        candidates: Log paths in priority order; may contain glob wildcards.
        fallback: Canonical path used when no candidate exists yet.
        keywords: Substrings used to list related filters for diagnostics.
        maxretry: Per-jail retry threshold.
    """

    name: str
    jail: str
    filter_name: str
    candidates: Tuple[str, ...]
    fallback: str
    keywords: Tuple[str, ...] = ()
    maxretry: int = 3


@dataclass(frozen=True)
class LogResolution:
    path: str
    status: str

    @property
    def resolved(self) -> bool:
        return bool(self.path)


@dataclass(frozen=True)
class ServiceState:
    """Detection outcome for one service, passed by value into compilation."""

    service: ServiceSpec
    resolution: LogResolution
    filter_available: bool


@dataclass(frozen=True)
class JailSpec:
    service: str
    jail: str
    enabled: bool
    filter_name: str
    logpath: str
    maxretry: int
    log_status: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class JailPolicyDocument:
    ignoreip: Tuple[str, ...]
    bantime: int
    findtime: int
    maxretry: int
    backend: str
    jails: Tuple[JailSpec, ...]

    @property
    def enabled_jails(self) -> List[JailSpec]:
        return [jail for jail in self.jails if jail.enabled]

    @property
    def skipped_jails(self) -> List[JailSpec]:
        return [jail for jail in self.jails if not jail.enabled]


@dataclass(frozen=True)
class Plan:
    states: Tuple[ServiceState, ...]
    registry: Tuple[str, ...]
    diagnostic_filters: Tuple[str, ...]
    document: JailPolicyDocument


@dataclass
class ApplyResult:
    path: Path
    backup: Optional[Path] = None
    active_jails: Optional[List[str]] = None
    status_error: Optional[str] = None

    @property
    def status_known(self) -> bool:
        return self.active_jails is not None


DEFAULT_SERVICES: Tuple[ServiceSpec, ...] = (
    ServiceSpec(
        name="ssh-auth",
        jail="sshd",
        filter_name="sshd",
        candidates=("/var/log/secure", "/var/log/auth.log"),
        fallback="/var/log/secure",
        keywords=("sshd",),
    ),
    ServiceSpec(
        name="web-auth",
        jail="apache-auth",
        filter_name="apache-auth",
        candidates=("/var/log/httpd/error_log", "/var/log/apache2/error.log"),
        fallback="/var/log/httpd/error_log",
        keywords=("apache", "nginx"),
    ),
    ServiceSpec(
        name="database-auth",
        jail="mysqld-auth",
        filter_name="mysqld-auth",
        candidates=(
            "/var/log/mysql/mysqld.log",
            "/var/log/mysqld.log",
            "/var/log/mysql/error.log",
        ),
        fallback="/var/log/mysql/mysqld.log",
        keywords=("mysql",),
    ),
)


@dataclass
class Config:
    LOG_FILE: str = "/var/log/fail2ban_jail_planner.log"
    JAIL_LOCAL: Path = field(default_factory=lambda: Path("/etc/fail2ban/jail.local"))
    FILTER_DIR: Path = field(default_factory=lambda: Path("/etc/fail2ban/filter.d"))

    BANTIME: int = 3600
    FINDTIME: int = 600
    MAXRETRY: int = 5
    BACKEND: str = "systemd"

    RELOAD_CMD: List[str] = field(default_factory=lambda: ["systemctl", "restart", "fail2ban"])
    STATUS_CMD: List[str] = field(default_factory=lambda: ["fail2ban-client", "status"])
    STATUS_ATTEMPTS: int = 5
    STATUS_BACKOFF: float = 1.0  # seconds, doubled after each failed query
    STATUS_TIMEOUT: float = 10.0  # seconds, overall budget for the status poll
    OPERATION_TIMEOUT: int = 60  # seconds, per daemon command

    SERVICES: Tuple[ServiceSpec, ...] = DEFAULT_SERVICES


# ----------------------------------------------------------------
# Errors
# ----------------------------------------------------------------
class PlannerError(Exception):
    """Base class for failures surfaced to the operator."""


class ReloadFailure(PlannerError):
    """Fail2ban rejected or could not apply the new jail.local."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class QueryFailure(PlannerError):
    """The active jail set could not be read back from Fail2ban."""


class PolicyWriteError(PlannerError):
    """jail.local could not be written. Nothing was reloaded."""


# ----------------------------------------------------------------
# Logging & UI Helpers
# ----------------------------------------------------------------
def setup_logger(log_file: Union[str, Path]) -> logging.Logger:
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(logging.DEBUG)
    for h in log.handlers[:]:
        log.removeHandler(h)
    console_handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    console_handler.setLevel(logging.INFO)
    log.addHandler(console_handler)
    log_file = Path(log_file)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
    except OSError as e:
        log.warning(f"File logging disabled, cannot open {log_file}: {e}")
        return log
    file_handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S")
    file_handler.setFormatter(formatter)
    log.addHandler(file_handler)
    try:
        os.chmod(str(log_file), 0o600)
    except OSError as e:
        log.warning(f"Could not set permissions on log file {log_file}: {e}")
    return log


def print_header(text: str) -> None:
    """Print an ASCII art header using pyfiglet."""
    term_width, _ = shutil.get_terminal_size((80, 24))
    font = "slant" if term_width >= 60 else "small"
    ascii_art = pyfiglet.figlet_format(text, font=font, width=min(term_width - 4, 120))
    console.print(ascii_art, style=f"bold {NordColors.FROST_2}", highlight=False)
    console.print(f"[{NordColors.SNOW_STORM_1}]v{VERSION}[/]")


def print_message(text: str, style: str = NordColors.FROST_2, prefix: str = "•") -> None:
    console.print(f"[{style}]{prefix} {text}[/{style}]", highlight=False)


def print_step(message: str) -> None:
    print_message(message, NordColors.FROST_2, "→")


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def display_panel(title: str, message: Union[str, Text], style: str = NordColors.FROST_2) -> None:
    panel = Panel(
        message,
        title=title,
        border_style=style,
        padding=(1, 2),
        box=box.ROUNDED,
    )
    console.print(panel)


# ----------------------------------------------------------------
# Log Path Resolver
# ----------------------------------------------------------------
def is_glob(path: str) -> bool:
    return GLOB_CHARS.search(path) is not None


def path_exists(path: str) -> bool:
    """Default existence oracle: a regular file at ``path``."""
    return os.path.isfile(path)


def _ensure_parent_dir(path: str) -> None:
    parent = os.path.dirname(path)
    if not parent or is_glob(parent):
        return
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        logger.warning(f"Could not create {parent} for pending log {path}: {e}")


def resolve_log_path(
    service: ServiceSpec,
    exists: Callable[[str], bool] = path_exists,
    ensure_parent: bool = True,
) -> LogResolution:
    """
    Pick the log path Fail2ban should watch for a service.

    The first candidate that exists wins. A candidate containing glob
    wildcards is accepted as-is without looking for matching files, since
    daemons that rotate into timestamped files may not have written one
    yet. None of DEFAULT_SERVICES uses a glob; this only applies to
    catalogues passed in through Config.SERVICES. When nothing exists the
    service's fallback is returned as pending and its parent directory is
    created so the owning service can write there on first start.

    Args:
        service: The service whose candidates are checked.
        exists: Existence oracle; errors it raises count as "missing".
        ensure_parent: Create the fallback's parent directory when pending.

    Returns:
        Exactly one LogResolution. This function never raises.
    """
    for candidate in service.candidates:
        if is_glob(candidate):
            if not glob.glob(candidate):
                logger.warning(f"{service.name}: log pattern {candidate} matches no files yet")
            logger.debug(f"{service.name}: accepting log pattern {candidate}")
            return LogResolution(candidate, LOG_GLOB)
        try:
            present = exists(candidate)
        except OSError as e:
            logger.debug(f"{service.name}: existence check failed for {candidate}: {e}")
            present = False
        if present:
            logger.info(f"{service.name}: log path {candidate}")
            return LogResolution(candidate, LOG_FOUND)

    logger.warning(f"{service.name}: no log file found, expecting {service.fallback} once the service starts")
    if ensure_parent:
        _ensure_parent_dir(service.fallback)
    return LogResolution(service.fallback, LOG_PENDING)


# ----------------------------------------------------------------
# Filter Availability Checker
# ----------------------------------------------------------------
def list_filters(filter_dir: Union[str, Path]) -> Tuple[str, ...]:
    """
    Return the sorted filter names installed in a Fail2ban filter registry.

    A missing registry and an unreadable one are treated the same way: no
    filters are available.
    """
    try:
        entries = os.listdir(filter_dir)
    except OSError as e:
        logger.warning(f"Filter registry {filter_dir} unavailable: {e}")
        return ()
    names = set()
    for entry in entries:
        stem, suffix = os.path.splitext(entry)
        if suffix in FILTER_SUFFIXES and stem:
            names.add(stem)
    return tuple(sorted(names))


def filter_available(service: ServiceSpec, registry: Iterable[str]) -> bool:
    return service.filter_name in set(registry)


def related_filters(
    services: Sequence[ServiceSpec],
    registry: Iterable[str],
    limit: int = DIAGNOSTIC_LIMIT,
) -> Tuple[str, ...]:
    """Registry entries whose name contains any service keyword. Diagnostic only."""
    keywords = [kw for service in services for kw in service.keywords]
    matches = [name for name in sorted(registry) if any(kw in name for kw in keywords)]
    return tuple(matches[:limit])


# ----------------------------------------------------------------
# Jail Policy Compiler
# ----------------------------------------------------------------
def build_ignore_list(external_ip: str) -> Tuple[str, ...]:
    return FIXED_IGNORE_LIST + (external_ip.strip(),)


def compile_jail(state: ServiceState) -> JailSpec:
    service = state.service
    resolution = state.resolution
    reason = None
    if not resolution.resolved:
        reason = REASON_LOG_UNRESOLVED
    elif not state.filter_available:
        reason = REASON_FILTER_UNAVAILABLE
    return JailSpec(
        service=service.name,
        jail=service.jail,
        enabled=reason is None,
        filter_name=service.filter_name,
        logpath=resolution.path,
        maxretry=service.maxretry,
        log_status=resolution.status,
        reason=reason,
    )


def compile_policy(
    states: Sequence[ServiceState],
    external_ip: str,
    config: Config,
) -> JailPolicyDocument:
    """
    Combine detection results into a JailPolicyDocument.

    Jails keep the order of ``states``. Disabled jails stay in the document
    (so callers can report them) but are never rendered.

    Raises:
        ValueError: If a service or jail name is declared more than once.
    """
    seen_services, seen_jails = set(), set()
    jails = []
    for state in states:
        service = state.service
        if service.name in seen_services or service.jail in seen_jails:
            raise ValueError(f"Service {service.name} ({service.jail}) declared more than once")
        seen_services.add(service.name)
        seen_jails.add(service.jail)

        jail = compile_jail(state)
        if jail.enabled:
            logger.info(f"{jail.jail} jail enabled (log: {jail.logpath})")
        else:
            logger.warning(f"{jail.jail} jail skipped: {jail.reason} (log: {jail.logpath})")
        jails.append(jail)

    return JailPolicyDocument(
        ignoreip=build_ignore_list(external_ip),
        bantime=config.BANTIME,
        findtime=config.FINDTIME,
        maxretry=config.MAXRETRY,
        backend=config.BACKEND,
        jails=tuple(jails),
    )


def render_policy(document: JailPolicyDocument) -> str:
    """Serialize a document to jail.local text. Disabled jails are omitted."""
    blocks = [
        "\n".join([
            "[DEFAULT]",
            f"ignoreip = {' '.join(document.ignoreip)}",
            f"bantime = {document.bantime}",
            f"findtime = {document.findtime}",
            f"maxretry = {document.maxretry}",
            f"backend = {document.backend}",
        ])
    ]
    for jail in document.enabled_jails:
        blocks.append("\n".join([
            f"[{jail.jail}]",
            "enabled = true",
            f"filter = {jail.filter_name}",
            f"logpath = {jail.logpath}",
            f"maxretry = {jail.maxretry}",
        ]))
    return "\n\n".join(blocks) + "\n"


def plan_policy(
    config: Config,
    external_ip: str,
    exists: Callable[[str], bool] = path_exists,
    ensure_parent: bool = True,
) -> Plan:
    """
    Run detection against the host and compile the resulting policy.

    The filter registry is listed once; each service is resolved once.
    """
    registry = list_filters(config.FILTER_DIR)
    states = tuple(
        ServiceState(
            service=service,
            resolution=resolve_log_path(service, exists=exists, ensure_parent=ensure_parent),
            filter_available=filter_available(service, registry),
        )
        for service in config.SERVICES
    )
    document = compile_policy(states, external_ip, config)
    return Plan(
        states=states,
        registry=registry,
        diagnostic_filters=related_filters(config.SERVICES, registry),
        document=document,
    )


# ----------------------------------------------------------------
# Fail2ban Interaction Functions
# ----------------------------------------------------------------
def run_command(cmd: List[str], timeout: int) -> subprocess.CompletedProcess:
    logger.debug(f"Running command: {' '.join(cmd)}")
    return subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=timeout)


def backup_file(file_path: Path) -> Optional[Path]:
    """Copy ``file_path`` to ``<name>.bak``, replacing any earlier backup."""
    if not file_path.is_file():
        return None
    backup_path = file_path.with_name(file_path.name + ".bak")
    try:
        shutil.copy2(file_path, backup_path)
    except OSError as e:
        logger.warning(f"Failed to backup {file_path}: {e}")
        return None
    logger.debug(f"Backed up {file_path} to {backup_path}")
    return backup_path


def write_policy(text: str, path: Path, backup: bool = True) -> Optional[Path]:
    """
    Replace ``path`` with ``text``. Returns the backup of the prior file, if any.

    Raises:
        PolicyWriteError: If the document cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        saved = backup_file(path) if backup else None
        path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise PolicyWriteError(f"Could not write {path}: {e}") from e
    logger.info(f"Fail2ban configuration written to {path}")
    return saved


def reload_daemon(config: Config) -> None:
    """Restart Fail2ban once. Raises ReloadFailure if it does not come back."""
    try:
        run_command(config.RELOAD_CMD, config.OPERATION_TIMEOUT)
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise ReloadFailure(
            f"{' '.join(config.RELOAD_CMD)} exited with status {e.returncode}",
            returncode=e.returncode,
            stderr=stderr,
        ) from e
    except subprocess.TimeoutExpired as e:
        raise ReloadFailure(f"{' '.join(config.RELOAD_CMD)} timed out after {e.timeout} seconds") from e
    except OSError as e:
        raise ReloadFailure(f"Cannot run {config.RELOAD_CMD[0]}: {e}") from e
    logger.info("Fail2ban restarted successfully")


def parse_jail_list(output: str) -> List[str]:
    """
    Extract jail names from ``fail2ban-client status`` output.

    Example output:
        Status
        |- Number of jail:      2
        `- Jail list:   sshd, apache-auth

    Raises:
        QueryFailure: If the output has no jail list line.
    """
    for line in output.splitlines():
        if "Jail list:" in line:
            tail = line.split("Jail list:", 1)[1]
            return [name.strip() for name in tail.split(",") if name.strip()]
    raise QueryFailure("No 'Jail list:' line in fail2ban-client status output")


def query_active_jails(config: Config) -> List[str]:
    try:
        result = run_command(config.STATUS_CMD, config.OPERATION_TIMEOUT)
    except subprocess.CalledProcessError as e:
        raise QueryFailure(f"{' '.join(config.STATUS_CMD)} exited with status {e.returncode}") from e
    except (subprocess.TimeoutExpired, OSError) as e:
        raise QueryFailure(str(e)) from e
    return parse_jail_list(result.stdout or "")


def wait_for_active_jails(
    config: Config,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> List[str]:
    """
    Poll the daemon for its active jails until it answers or the budget runs out.

    At most STATUS_ATTEMPTS queries are made, with a doubling backoff starting
    at STATUS_BACKOFF, and no sleep extends past STATUS_TIMEOUT.

    Raises:
        QueryFailure: If no query succeeded within the attempt and time budget.
    """
    deadline = clock() + config.STATUS_TIMEOUT
    delay = config.STATUS_BACKOFF
    attempts = max(1, config.STATUS_ATTEMPTS)
    last_error: Optional[QueryFailure] = None
    for attempt in range(1, attempts + 1):
        try:
            return query_active_jails(config)
        except QueryFailure as e:
            last_error = e
            logger.debug(f"Status query attempt {attempt}/{attempts} failed: {e}")
        remaining = deadline - clock()
        if attempt == attempts or remaining <= 0:
            break
        sleep(min(delay, remaining))
        delay *= 2
    raise QueryFailure(f"Fail2ban status unavailable after {attempt} attempt(s): {last_error}")


def apply_policy(
    text: str,
    config: Config,
    sleep: Callable[[float], None] = time.sleep,
) -> ApplyResult:
    """
    Write the document, restart Fail2ban and read back the active jails.

    Every step runs once. A failed status query downgrades the result to
    "status unknown" instead of failing the run.

    Raises:
        PolicyWriteError: If the document cannot be written.
        ReloadFailure: If Fail2ban does not restart. The new document stays on disk.
    """
    result = ApplyResult(path=config.JAIL_LOCAL)
    result.backup = write_policy(text, config.JAIL_LOCAL)
    reload_daemon(config)
    try:
        result.active_jails = wait_for_active_jails(config, sleep=sleep)
    except QueryFailure as e:
        logger.warning(f"Reload succeeded but status unknown: {e}")
        result.status_error = str(e)
    return result


# ----------------------------------------------------------------
# UI Components
# ----------------------------------------------------------------
def display_plan_table(plan: Plan) -> None:
    table = Table(
        show_header=True,
        header_style=f"bold {NordColors.FROST_1}",
        box=box.ROUNDED,
        title="Jail Plan",
        padding=(0, 1),
    )
    table.add_column("Service", style=f"bold {NordColors.FROST_1}")
    table.add_column("Jail", style=f"{NordColors.SNOW_STORM_1}")
    table.add_column("Log path", style=f"{NordColors.SNOW_STORM_1}", overflow="fold")
    table.add_column("Log", justify="center")
    table.add_column("Filter", justify="center")
    table.add_column("Result", justify="center")
    jails = {jail.service: jail for jail in plan.document.jails}
    for state in plan.states:
        jail = jails[state.service.name]
        filter_cell = (
            f"[{NordColors.GREEN}]{jail.filter_name}[/]"
            if state.filter_available
            else f"[{NordColors.RED}]missing[/]"
        )
        result_cell = (
            f"[{NordColors.GREEN}]enabled[/]"
            if jail.enabled
            else f"[{NordColors.YELLOW}]skipped[/]"
        )
        table.add_row(state.service.name, jail.jail, jail.logpath, jail.log_status, filter_cell, result_cell)
    console.print(table)


def report_plan(plan: Plan, filter_dir: Path) -> None:
    if plan.diagnostic_filters:
        print_step(f"Related filters in {filter_dir}: {', '.join(plan.diagnostic_filters)}")
    else:
        print_warning(f"No related filters found in {filter_dir}")
    display_plan_table(plan)
    if not plan.document.enabled_jails:
        print_warning("No jails can be enabled on this host")


def report_apply(result: ApplyResult) -> None:
    if not result.status_known:
        print_warning("Reload succeeded but status unknown (applied, status unknown)")
        if result.status_error:
            print_message(result.status_error, NordColors.SNOW_STORM_1, " ")
        return
    if result.active_jails:
        print_success(f"{len(result.active_jails)} jails active: {', '.join(result.active_jails)}")
    else:
        print_warning("Fail2ban is running but no jails are active")


def dump_document(text: str) -> None:
    console.rule(f"[bold {NordColors.RED}]jail.local as written[/]")
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)
    console.rule(style=NordColors.RED)


# ----------------------------------------------------------------
# Main CLI Entry Point with Click
# ----------------------------------------------------------------
def _validate_ip(ctx: click.Context, param: click.Parameter, value: str) -> str:
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an IPv4 or IPv6 address")


@click.command(context_settings={"help_option_names": ["-h", "--help"], "auto_envvar_prefix": "F2B_PLANNER"})
@click.option("--external-ip", required=True, callback=_validate_ip,
              help="Operator address added to the Fail2ban ignore list.")
@click.option("--jail-local", type=click.Path(dir_okay=False, path_type=Path),
              default=lambda: Config().JAIL_LOCAL, show_default="/etc/fail2ban/jail.local",
              help="Where the generated configuration is written.")
@click.option("--filter-dir", type=click.Path(file_okay=False, path_type=Path),
              default=lambda: Config().FILTER_DIR, show_default="/etc/fail2ban/filter.d",
              help="Fail2ban filter registry.")
@click.option("--log-file", default=Config.LOG_FILE, show_default=True, help="Planner log file.")
@click.option("--bantime", type=click.IntRange(min=1), default=Config.BANTIME, show_default=True)
@click.option("--findtime", type=click.IntRange(min=1), default=Config.FINDTIME, show_default=True)
@click.option("--maxretry", type=click.IntRange(min=1), default=Config.MAXRETRY, show_default=True)
@click.option("--backend", default=Config.BACKEND, show_default=True)
@click.option("--dry-run", is_flag=True, help="Print the configuration without writing or reloading.")
@click.option("--no-banner", is_flag=True, help="Skip the ASCII header.")
def main(
    external_ip: str,
    jail_local: Path,
    filter_dir: Path,
    log_file: str,
    bantime: int,
    findtime: int,
    maxretry: int,
    backend: str,
    dry_run: bool,
    no_banner: bool,
) -> None:
    """
    Fail2ban Jail Planner - Nord Themed CLI

    Detects log files and filters, writes jail.local and restarts Fail2ban.
    """
    if not no_banner:
        print_header(APP_NAME)

    if not dry_run and os.geteuid() != 0:
        print_error("This script requires root privileges. Please run with sudo or use --dry-run.")
        sys.exit(EXIT_ERROR)

    config = Config(
        LOG_FILE=log_file,
        JAIL_LOCAL=jail_local,
        FILTER_DIR=filter_dir,
        BANTIME=bantime,
        FINDTIME=findtime,
        MAXRETRY=maxretry,
        BACKEND=backend,
    )
    try:
        sys.exit(run_planner(config, external_ip, dry_run))
    except KeyboardInterrupt:
        print_warning("Operation cancelled by user.")
        sys.exit(EXIT_INTERRUPTED)


def run_planner(config: Config, external_ip: str, dry_run: bool) -> int:
    """Plan and, unless dry_run, apply the policy. Returns the exit code."""
    setup_logger(config.LOG_FILE)
    logger.info(f"{APP_NAME} v{VERSION} started (dry run: {dry_run})")

    plan = plan_policy(config, external_ip, ensure_parent=not dry_run)
    report_plan(plan, config.FILTER_DIR)
    text = render_policy(plan.document)

    if dry_run:
        display_panel("jail.local (dry run)", Text(text))
        return EXIT_OK

    try:
        with Progress(
            SpinnerColumn(style=f"bold {NordColors.FROST_1}"),
            TextColumn("[bold]Applying Fail2ban configuration...[/]"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Applying", total=None)
            result = apply_policy(text, config)
    except ReloadFailure as e:
        logger.error(f"Fail2ban failed to restart: {e}")
        print_error(f"Fail2ban failed to restart - check configuration: {e}")
        if e.stderr:
            print_message(e.stderr, NordColors.SNOW_STORM_1, " ")
        dump_document(text)
        return EXIT_RELOAD_FAILED
    except PolicyWriteError as e:
        logger.error(str(e))
        print_error(str(e))
        return EXIT_ERROR

    if result.backup:
        print_step(f"Previous configuration saved to {result.backup}")
    report_apply(result)
    return EXIT_OK


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        print_error(f"\nUnexpected error: {e}")
        console.print_exception()
        sys.exit(EXIT_ERROR)
