# plus/modules/registry.py
"""
Registro de pacotes instalados.

Formato de <root>/var/db/installed.packages (uma linha por instalação):

    2025-09-19_12:34:56 zlib dep
    2025-09-19_12:40:02 curl explicit

O terceiro campo diz por que o pacote entrou: pedido pelo usuário ("explicit")
ou puxado como dependência ("dep"). Linhas antigas sem esse campo valem como
"explicit". O registro mais recente de cada nome é o que vale.

Dependentes e órfãos são calculados a partir das declarações (.dep) de cada
pacote instalado, não por busca de texto no registro.
"""

from __future__ import annotations
import os
import threading
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from plus.modules import logger as _logger
from plus.modules.config import config
from plus.modules.recipe import RecipeManager, valid_name
from plus.modules.utils import PlusError, Utils

TIMESTAMP_FORMAT = "%Y-%m-%d_%H:%M:%S"

REASON_EXPLICIT = "explicit"
REASON_DEP = "dep"
REASONS = (REASON_EXPLICIT, REASON_DEP)


class RegistryWriteFailure(PlusError):
    pass


class InstallRecord(NamedTuple):
    timestamp: str
    name: str
    reason: str = REASON_EXPLICIT

    @property
    def explicit(self) -> bool:
        return self.reason == REASON_EXPLICIT

    def to_line(self) -> str:
        return f"{self.timestamp} {self.name} {self.reason}"

    @classmethod
    def from_line(cls, line: str) -> Optional["InstallRecord"]:
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("#"):
            return None
        reason = parts[2] if len(parts) > 2 and parts[2] in REASONS else REASON_EXPLICIT
        return cls(parts[0], parts[1], reason)


def now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class PackageRegistry:
    def __init__(self, db_file: Optional[str] = None, recipes: Optional[RecipeManager] = None):
        self.db_file = os.path.abspath(db_file or config.paths()["db_file"])
        self.recipes = recipes or RecipeManager()
        self.log = _logger.Logger("registry")
        # único escritor: toda mutação passa por aqui
        self._lock = threading.RLock()

    # -------------------------
    # Leitura
    # -------------------------
    def _read_lines(self) -> List[str]:
        if not os.path.exists(self.db_file):
            return []
        with open(self.db_file, "r", encoding="utf-8") as fh:
            return fh.read().splitlines()

    def records(self) -> List[InstallRecord]:
        with self._lock:
            lines = self._read_lines()
        return [rec for rec in (InstallRecord.from_line(l) for l in lines) if rec]

    def latest(self) -> Dict[str, InstallRecord]:
        """Registro mais recente por nome, na ordem da primeira aparição."""
        current: Dict[str, InstallRecord] = {}
        for rec in self.records():
            current[rec.name] = rec
        return current

    def latest_record(self, name: str) -> Optional[InstallRecord]:
        return self.latest().get(name)

    def is_installed(self, name: str) -> bool:
        return any(rec.name == name for rec in self.records())

    def list_installed(self) -> Set[str]:
        return {rec.name for rec in self.records()}

    def installed_in_order(self) -> List[str]:
        seen: List[str] = []
        for rec in self.records():
            if rec.name not in seen:
                seen.append(rec.name)
        return seen

    # -------------------------
    # Escrita (temp + os.replace, sob lock)
    # -------------------------
    def _rewrite(self, lines: List[str]):
        content = "".join(line + "\n" for line in lines)
        try:
            Utils.atomic_write(self.db_file, content)
        except OSError as e:
            raise RegistryWriteFailure(f"Could not write registry {self.db_file}: {e}")

    def record_install(self, name: str, timestamp: Optional[str] = None, explicit: bool = True) -> InstallRecord:
        return self.record_installs([(name, explicit)], timestamp=timestamp)[0]

    def record_installs(self, entries: Iterable[Tuple[str, bool]],
                        timestamp: Optional[str] = None) -> List[InstallRecord]:
        """
        Acrescenta vários registros numa única escrita: ou entram todos, ou nenhum.
        """
        entries = list(entries)
        ts = timestamp or now_timestamp()
        if " " in ts:
            raise ValueError(f"Timestamp must not contain spaces: {ts!r}")
        for name, _ in entries:
            if not valid_name(name):
                raise ValueError(f"Package name must be a single field: {name!r}")
        new = [InstallRecord(ts, name, REASON_EXPLICIT if explicit else REASON_DEP)
               for name, explicit in entries]
        if not new:
            return []
        with self._lock:
            lines = self._read_lines()
            self._rewrite(lines + [rec.to_line() for rec in new])
        for rec in new:
            self.log.info(f"INSTALL Registered {rec.name} ({rec.reason})")
        return new

    def remove_record(self, name: str) -> int:
        """Remove todos os registros de `name`. Retorna quantos foram removidos."""
        with self._lock:
            lines = self._read_lines()
            kept = []
            removed = 0
            for line in lines:
                rec = InstallRecord.from_line(line)
                if rec and rec.name == name:
                    removed += 1
                    continue
                kept.append(line)
            if removed:
                self._rewrite(kept)
        if removed:
            self.log.info(f"REMOVE Deregistered {name} ({removed} record(s))")
        else:
            self.log.debug(f"REMOVE No registry entry for {name}")
        return removed

    # -------------------------
    # Consultas derivadas das declarações
    # -------------------------
    def find_dependents(self, name: str) -> Set[str]:
        """Pacotes instalados cuja lista obrigatória contém `name`."""
        dependents = set()
        for other in self.list_installed():
            if other == name:
                continue
            if name in self.recipes.required_of(other):
                dependents.add(other)
        self.log.debug(f"Reverse deps for {name}: {sorted(dependents)}")
        return dependents

    def find_orphans(self) -> Set[str]:
        """
        Instalados só como dependência e que nenhum instalado declara mais,
        seja como obrigatória (.dep) ou recomendada (.recom).
        """
        latest = self.latest()
        wanted: Set[str] = set()
        for name in latest:
            decl = self.recipes.load(name)
            wanted.update(d for d in decl.required + decl.recommended if d != name)
        orphans = {name for name, rec in latest.items()
                   if not rec.explicit and name not in wanted}
        for name in sorted(orphans):
            self.log.info(f"ORPHAN Found orphan package: {name}")
        return orphans
