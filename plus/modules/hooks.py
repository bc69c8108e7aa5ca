# plus/modules/hooks.py
import os
import subprocess
from typing import Callable, Dict, List, Optional

from plus.modules import logger
from plus.modules.config import config
from plus.modules.utils import PlusError

STAGES = ("sync", "build", "install", "remove", "upgrade")


class HookError(PlusError):
    def __init__(self, stage: str, package: str, reason: str):
        self.stage = stage
        self.package = package
        super().__init__(f"Hook {stage} failed for {package}: {reason}")


class HookManager:
    """
    Gerencia hooks por stage ("pre-build", "post-install", ...).
    - Scripts: <hooks_dir>/<stage>.sh, executados com o nome do pacote como argumento
      (somente se executáveis; ausente -> no-op)
    - Funções Python registradas com register(stage, func), chamadas como func(package)
    """

    def __init__(self, hooks_dir: Optional[str] = None, dry_run: bool = False):
        self.hooks_dir = hooks_dir or config.paths()["hooks_dir"]
        self.global_hooks: Dict[str, List[Callable]] = {}
        self.log = logger.Logger("hooks")
        self.dry_run = dry_run

    # ---------------------------------------------------
    # Registro de hooks
    # ---------------------------------------------------
    @staticmethod
    def stage_name(when: str, stage: str) -> str:
        if when not in ("pre", "post") or stage not in STAGES:
            raise ValueError(f"Invalid hook stage: {when}-{stage}")
        return f"{when}-{stage}"

    def register(self, stage: str, func: Callable):
        """Registra um hook Python para o stage (ex.: "pre-build")"""
        self.global_hooks.setdefault(stage, []).append(func)
        self.log.debug(f"Hook registrado para stage={stage}: {func}")

    def script_path(self, stage: str) -> str:
        return os.path.join(self.hooks_dir, f"{stage}.sh")

    # ---------------------------------------------------
    # Execução
    # ---------------------------------------------------
    def run_hook(self, stage: str, package: str):
        """
        Executa os hooks do stage. Qualquer falha vira HookError;
        cabe a quem chama decidir se aborta (pre) ou só registra (post).
        """
        for func in self.global_hooks.get(stage, []):
            self._execute_func(stage, func, package)

        script = self.script_path(stage)
        if os.path.isfile(script) and os.access(script, os.X_OK):
            self._execute_script(stage, script, package)

    def _execute_func(self, stage: str, func: Callable, package: str):
        name = getattr(func, "__name__", repr(func))
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Executaria hook Python {name} ({stage}) para {package}")
            return
        try:
            func(package)
        except Exception as e:
            self.log.error(f"Erro no hook Python {name}: {e}")
            raise HookError(stage, package, str(e)) from e

    def _execute_script(self, stage: str, script: str, package: str):
        self.log.info(f"HOOK Running {stage} for {package}")
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Não executado: {script} {package}")
            return
        try:
            subprocess.run([script, package], check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            self.log.error(f"Erro ao executar hook '{script}': {e}")
            raise HookError(stage, package, str(e)) from e

    # ---------------------------------------------------
    # Helpers
    # ---------------------------------------------------
    def list_hooks(self) -> Dict[str, List[str]]:
        """Lista hooks disponíveis (registrados e scripts no disco)"""
        listed = {stage: [getattr(f, "__name__", repr(f)) for f in funcs]
                  for stage, funcs in self.global_hooks.items()}
        for when in ("pre", "post"):
            for stage in STAGES:
                name = self.stage_name(when, stage)
                script = self.script_path(name)
                if os.path.isfile(script) and os.access(script, os.X_OK):
                    listed.setdefault(name, []).append(script)
        return listed
