# plus/modules/clean.py
"""
Limpeza dos diretórios de trabalho (comando `plus clean`).

  workdir -> build/ e sha256/ são recriados vazios; src/ (declarações) fica intacto
  sync    -> fontes baixados
  logs    -> arquivos de log
"""

import os
import shutil
from typing import List

from plus.modules import logger as _logger
from plus.modules.config import config
from plus.modules.utils import Utils


class Cleaner:
    def __init__(self, dry_run: bool = False):
        self.paths = config.paths()
        self.dry_run = dry_run
        self.log = _logger.Logger("clean")

    def _reset_dir(self, path: str) -> str:
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Would clean {path}")
            return path
        if os.path.isdir(path):
            for entry in os.listdir(path):
                full = os.path.join(path, entry)
                if os.path.isdir(full) and not os.path.islink(full):
                    shutil.rmtree(full)
                else:
                    os.remove(full)
        Utils.ensure_dir(path)
        return path

    def clean_workdir(self) -> List[str]:
        self.log.info(f"CLEAN Cleaning workdir {self.paths['workdir']}")
        return [self._reset_dir(self.paths[key]) for key in ("build_dir", "sha256_dir")]

    def clean_sync(self) -> List[str]:
        self.log.info(f"CLEAN Cleaning sync directory {self.paths['sync_dir']}")
        return [self._reset_dir(self.paths["sync_dir"])]

    def clean_logs(self) -> List[str]:
        # o arquivo de log é reaberto a cada linha, então apagá-lo aqui é seguro
        self.log.info(f"CLEAN Cleaning logs directory {self.paths['log_dir']}")
        return [self._reset_dir(self.paths["log_dir"])]

    def clean_all(self) -> List[str]:
        cleaned = self.clean_workdir() + self.clean_sync() + self.clean_logs()
        self.log.info("CLEAN All directories cleaned")
        return cleaned
