# plus/modules/fakeroot.py
import os
import shlex
import shutil
import subprocess
import time
from datetime import datetime

from plus.modules import logger
from plus.modules.utils import PlusError


class CommandError(PlusError):
    def __init__(self, result):
        self.result = result
        super().__init__(
            f"Command failed ({result.returncode}): {' '.join(result.command)}\n{result.stderr.strip()}"
        )


class CommandResult:
    """Estrutura de resultado de um comando executado"""

    def __init__(self, command, returncode, stdout, stderr, duration):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.duration = duration
        self.timestamp = datetime.now().isoformat()

    def ok(self):
        return self.returncode == 0

    def to_dict(self):
        return {
            "command": self.command,
            "returncode": self.returncode,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }


class Fakeroot:
    """
    Executor de comandos externos (make, patch, git...).
    Com fakeroot=True o comando roda como `fakeroot <cmd>` (usado no make install),
    desde que o binário exista e `enabled` esteja ligado.
    """

    def __init__(self, dry_run: bool = False, enabled: bool = True, timeout=None):
        self.dry_run = dry_run
        self.enabled = enabled
        self.timeout = timeout
        self.log = logger.Logger("fakeroot")
        self.history = []

    def available(self):
        return shutil.which("fakeroot") is not None

    def run(self, command, cwd=None, env=None, timeout=None, check=True, fakeroot=False, stdin=None):
        """Executa comando (bloqueante). Falha com check=True vira CommandError."""
        if isinstance(command, str):
            command = shlex.split(command)
        command = list(command)

        if fakeroot and self.enabled:
            if self.available():
                command = ["fakeroot"] + command
            else:
                self.log.warning("fakeroot not found; running without it")

        self.log.info(f"[exec] {' '.join(command)}" + (f" (cwd={cwd})" if cwd else ""))

        if self.dry_run:
            return CommandResult(command, 0, "[dry-run]", "", 0)

        start = time.time()
        try:
            proc = subprocess.run(
                command,
                cwd=cwd,
                env=env or os.environ.copy(),
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout or self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            result = CommandResult(command, -1, e.stdout or "", f"timeout after {e.timeout}s", time.time() - start)
            self._process_result(result, check)
            return result
        except OSError as e:
            result = CommandResult(command, 127, "", str(e), time.time() - start)
            self._process_result(result, check)
            return result

        result = CommandResult(command, proc.returncode, proc.stdout, proc.stderr, time.time() - start)
        self._process_result(result, check)
        return result

    def _process_result(self, result: CommandResult, check: bool):
        self.history.append(result.to_dict())
        if result.returncode != 0:
            self.log.debug(f"[exec] stderr: {result.stderr.strip()}")
            if check:
                raise CommandError(result)
