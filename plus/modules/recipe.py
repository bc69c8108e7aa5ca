# plus/modules/recipe.py
"""
Declarações de pacotes.

Estrutura esperada:
  <workdir>/src/<pkg>/<pkg>.dep      -> obrigatórias
  <workdir>/src/<pkg>/<pkg>.optdep   -> opcionais
  <workdir>/src/<pkg>/<pkg>.recom    -> recomendadas
  <workdir>/src/<pkg>/recipe.yaml    -> opcional: url, branch, archive, cflags, ldflags

Arquivo ausente nunca é erro: vale lista vazia.
"""

from __future__ import annotations
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

import yaml

from plus.modules import logger as _logger
from plus.modules.config import config
from plus.modules.utils import PlusError, Utils


class RecipeError(PlusError):
    pass


def valid_name(name: str) -> bool:
    """Um nome de pacote é um único campo do registro: não vazio e sem espaços."""
    return bool(name) and len(name.split()) == 1 and name == name.strip()


@dataclass
class Package:
    name: str
    required: List[str] = field(default_factory=list)
    optional: List[str] = field(default_factory=list)
    recommended: List[str] = field(default_factory=list)
    source_url: Optional[str] = None
    branch: Optional[str] = None
    archive: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    @property
    def declared(self) -> bool:
        return bool(self.required or self.optional or self.recommended or self.meta)


def load_packages_list(path: str) -> Dict[str, Dict[str, Optional[str]]]:
    """
    Lê <root>/packages.list com linhas "pkg url [branch]".
    Retorna {pkg: {"url": ..., "branch": ...}} na ordem do arquivo.
    """
    entries: Dict[str, Dict[str, Optional[str]]] = {}
    if not os.path.isfile(path):
        return entries
    try:
        with open(path, "r", encoding="utf-8") as fh:
            lines = fh.read().splitlines()
    except UnicodeDecodeError:
        raise RecipeError(f"{path}: invalid encoding (expected UTF-8)")
    for lineno, line in enumerate(lines, 1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) < 2:
            raise RecipeError(f"{path}:{lineno}: expected 'pkg url [branch]', got {line!r}")
        entries[parts[0]] = {"url": parts[1], "branch": parts[2] if len(parts) > 2 else None}
    return entries


class RecipeManager:
    DEP_SUFFIXES = {
        "required": ".dep",
        "optional": ".optdep",
        "recommended": ".recom",
    }

    def __init__(self, src_dir: Optional[str] = None, packages_list: Optional[str] = None):
        paths = config.paths()
        self.src_dir = os.path.abspath(src_dir or paths["src_dir"])
        self.packages_list = packages_list or paths["packages_list"]
        self.log = _logger.Logger("recipe")
        # contador de leituras de declaração (usado para verificar idempotência)
        self.reads = 0
        self._lock = threading.Lock()

    def package_dir(self, name: str) -> str:
        return os.path.join(self.src_dir, name)

    def dep_file(self, name: str, kind: str) -> str:
        try:
            suffix = self.DEP_SUFFIXES[kind]
        except KeyError:
            raise RecipeError(f"Unknown dependency kind: {kind}")
        return os.path.join(self.package_dir(name), name + suffix)

    def _read_deps(self, name: str, kind: str) -> List[str]:
        path = self.dep_file(name, kind)
        try:
            deps = Utils.read_list_file(path)
        except UnicodeDecodeError:
            raise RecipeError(f"DEPS {path}: invalid encoding for {name} (expected UTF-8)")
        for dep in deps:
            if not valid_name(dep):
                raise RecipeError(f"DEPS {path}: invalid package name {dep!r} declared by {name}")
        return deps

    def _read_meta(self, name: str) -> Dict[str, Any]:
        path = os.path.join(self.package_dir(name), "recipe.yaml")
        if not os.path.isfile(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (yaml.YAMLError, UnicodeDecodeError) as e:
            raise RecipeError(f"Invalid recipe.yaml for {name}: {e}")
        if not isinstance(data, dict):
            raise RecipeError(f"recipe.yaml for {name} must be a mapping")
        return data

    def load(self, name: str) -> Package:
        """Carrega as três listas de dependências e o recipe.yaml de um pacote."""
        if not valid_name(name):
            raise RecipeError(f"Invalid package name: {name!r}")
        with self._lock:
            self.reads += 1
        pkg = Package(
            name=name,
            required=self._read_deps(name, "required"),
            optional=self._read_deps(name, "optional"),
            recommended=self._read_deps(name, "recommended"),
            meta=self._read_meta(name),
        )
        pkg.source_url = pkg.meta.get("url")
        pkg.branch = pkg.meta.get("branch")
        pkg.archive = pkg.meta.get("archive")
        if not pkg.source_url:
            listed = load_packages_list(self.packages_list).get(name)
            if listed:
                pkg.source_url = listed["url"]
                pkg.branch = pkg.branch or listed["branch"]
        if not pkg.declared:
            self.log.debug(f"DEPS No declaration for {name}; treating as no dependencies")
        return pkg

    def required_of(self, name: str) -> List[str]:
        return self.load(name).required

    def available(self) -> List[str]:
        """Pacotes com diretório de declaração em src/."""
        return Utils.list_subdirs(self.src_dir)
