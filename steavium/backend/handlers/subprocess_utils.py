import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 120


class CommandError(Exception):
    """Base class for failures running an external command."""

    def __init__(self, command: str, message: str):
        self.command = command
        super().__init__(message)


class CommandLaunchError(CommandError):
    def __init__(self, command: str, reason: str):
        self.reason = reason
        super().__init__(command, f"Failed to launch command ({command}): {reason}")


class CommandFailedError(CommandError):
    def __init__(self, command: str, exit_code: int, output: str):
        self.exit_code = exit_code
        self.output = output
        trimmed = output.strip()
        if trimmed:
            message = f"Command failed ({command}) with exit code {exit_code}:\n{trimmed}"
        else:
            message = f"Command failed ({command}) with exit code {exit_code}."
        super().__init__(command, message)


class CommandTimeoutError(CommandError):
    def __init__(self, command: str, timeout: float, output: str = ""):
        self.timeout = timeout
        self.output = output
        super().__init__(command, f"Command timed out after {timeout:g}s ({command})")


@dataclass(frozen=True)
class CommandResult:
    command: str
    exit_code: int
    output: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def command_text(cmd: Sequence[str]) -> str:
    return " ".join(str(part) for part in cmd)


def get_clean_subprocess_env(extra_env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Returns a copy of os.environ with Wine/bundle variables that would leak into
    the child removed, and common system directories guaranteed on PATH.
    Optionally merges in extra_env dict.
    """
    env = os.environ.copy()

    # A stray prefix or debug channel from the parent shell must not redirect the child
    for key in ['WINEPREFIX', 'WINEDEBUG', 'WINEARCH', 'CX_BOTTLE']:
        env.pop(key, None)
    for k in list(env):
        if k.startswith('_MEIPASS'):
            del env[k]

    system_paths = ['/opt/homebrew/bin', '/usr/local/bin', '/usr/bin', '/bin', '/usr/sbin', '/sbin']
    path_parts = [part for part in env.get('PATH', '').split(':') if part]
    for sys_path in system_paths:
        if sys_path not in path_parts and os.path.isdir(sys_path):
            path_parts.append(sys_path)
    env['PATH'] = ':'.join(path_parts)

    if extra_env:
        env.update(extra_env)
    return env


def _kill_process_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # Group already gone; fall back to the direct child
        try:
            proc.kill()
        except ProcessLookupError:
            pass


def run_command(cmd: Sequence[str], env: Optional[Dict[str, str]] = None,
                timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT,
                cwd: Optional[str] = None, check: bool = False) -> CommandResult:
    """
    Run cmd to completion with stdout and stderr merged.

    The child gets its own session so that, on timeout, the whole process
    group is killed and CommandTimeoutError is raised. With check=True a
    non-zero exit raises CommandFailedError.
    """
    cmd = [str(part) for part in cmd]
    text = command_text(cmd)
    if env is None:
        env = get_clean_subprocess_env()

    logger.debug(f"Running command: {text}")
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            env=env,
            cwd=cwd,
            text=True,
            errors='replace',
            start_new_session=True
        )
    except OSError as e:
        raise CommandLaunchError(text, str(e)) from e

    try:
        output, _ = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out after {timeout}s, killing process group: {text}")
        _kill_process_group(proc)
        output, _ = proc.communicate()
        raise CommandTimeoutError(text, timeout, output or "")

    result = CommandResult(command=text, exit_code=proc.returncode, output=output or "")
    if check and not result.succeeded:
        raise CommandFailedError(text, result.exit_code, result.output)
    return result


class ProcessManager:
    """
    Launches a long-running process detached from the caller, with output
    written to a log file, and tracks it for cancellation.
    """
    def __init__(self, cmd: List[str], env=None, cwd=None, log_path: Optional[Path] = None):
        self.cmd = [str(part) for part in cmd]
        # Default to cleaned environment if None
        if env is None:
            self.env = get_clean_subprocess_env()
        else:
            self.env = env
        self.cwd = cwd
        self.log_path = log_path
        self.proc = None
        self.process_group_pid = None
        self._start_process()

    def _start_process(self):
        text = command_text(self.cmd)
        log_handle = None
        try:
            if self.log_path is not None:
                Path(self.log_path).parent.mkdir(parents=True, exist_ok=True)
                log_handle = open(self.log_path, 'w', encoding='utf-8')
                stdout = log_handle
            else:
                stdout = subprocess.DEVNULL
            self.proc = subprocess.Popen(
                self.cmd,
                stdin=subprocess.DEVNULL,
                stdout=stdout,
                stderr=subprocess.STDOUT,
                env=self.env,
                cwd=self.cwd,
                start_new_session=True
            )
        except OSError as e:
            raise CommandLaunchError(text, str(e)) from e
        finally:
            # The child holds its own descriptor
            if log_handle is not None:
                log_handle.close()
        self.process_group_pid = os.getpgid(self.proc.pid)
        logger.info(f"Started detached process {self.proc.pid}: {text}")

    def cancel(self, timeout_terminate=2, timeout_kill=1):
        """
        Attempt to terminate the process and its children.
        """
        if not self.proc:
            return
        self.proc.terminate()
        try:
            self.proc.wait(timeout=timeout_terminate)
            return
        except subprocess.TimeoutExpired:
            pass
        if self.process_group_pid:
            try:
                os.killpg(self.process_group_pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
        try:
            self.proc.wait(timeout=timeout_kill)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {self.proc.pid} did not exit after SIGKILL")

    def is_running(self):
        return self.proc is not None and self.proc.poll() is None

    def wait(self, timeout=None):
        if self.proc:
            return self.proc.wait(timeout=timeout)
        return None
