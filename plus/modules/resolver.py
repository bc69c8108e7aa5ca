# plus/modules/resolver.py
"""
Resolver de dependências.

Percorre as declarações obrigatórias/recomendadas em profundidade e devolve
os pacotes em pós-ordem: toda dependência aparece antes de quem depende dela.
O estado (resolvidos / em andamento) pertence a uma única chamada de topo.
"""

from __future__ import annotations
from typing import Iterable, List, Optional, Set

from plus.modules import logger as _logger
from plus.modules.recipe import RecipeManager
from plus.modules.utils import PlusError


class CycleDetected(PlusError):
    def __init__(self, package: str, parent: Optional[str]):
        self.package = package
        self.parent = parent
        super().__init__(f"Dependency cycle detected: {package} <- {parent}")


class ResolutionState:
    """
    Marcações de uma chamada de resolução:
      resolved    -> resolução terminada
      in_progress -> no caminho ativo da recursão
    """

    def __init__(self):
        self.resolved: Set[str] = set()
        self.in_progress: Set[str] = set()
        self.order: List[str] = []

    def __repr__(self):
        return f"ResolutionState(resolved={len(self.resolved)}, in_progress={sorted(self.in_progress)})"


class DependencyResolver:
    def __init__(self, recipes: Optional[RecipeManager] = None, skip_recommended: bool = False):
        self.recipes = recipes or RecipeManager()
        self.skip_recommended = skip_recommended
        self.log = _logger.Logger("deps")

    def resolve(self, package: str, state: Optional[ResolutionState] = None,
                parent: Optional[str] = None, skip_recommended: Optional[bool] = None) -> List[str]:
        """
        Resolve `package` e devolve a ordem de build (dependências primeiro, pacote por último).
        Sem `state`, cada chamada cria o seu; passar o mesmo `state` compartilha o trabalho já feito.
        """
        if state is None:
            state = ResolutionState()
        skip = self.skip_recommended if skip_recommended is None else skip_recommended
        self._visit(package, parent, state, skip)
        return list(state.order)

    def resolve_many(self, packages: Iterable[str], skip_recommended: Optional[bool] = None) -> List[str]:
        state = ResolutionState()
        for pkg in packages:
            self.resolve(pkg, state=state, skip_recommended=skip_recommended)
        return list(state.order)

    def _visit(self, package: str, parent: Optional[str], state: ResolutionState, skip_recommended: bool):
        if package in state.in_progress:
            raise CycleDetected(package, parent)
        if package in state.resolved:
            return

        state.in_progress.add(package)
        self.log.info(f"DEPS Resolving dependencies for {package}")
        decl = self.recipes.load(package)

        for dep in decl.required:
            self._visit(dep, package, state, skip_recommended)

        for dep in decl.optional:
            self.log.info(f"DEPS Optional: {dep} for {package} (skipped by default)")

        for dep in decl.recommended:
            if skip_recommended:
                self.log.info(f"DEPS Recommended: {dep} for {package} (skipped by --no-recommended)")
                continue
            self.log.info(f"DEPS Recommended: {dep} for {package}")
            self._visit(dep, package, state, skip_recommended)

        state.in_progress.discard(package)
        state.resolved.add(package)
        state.order.append(package)

    def describe(self, package: str) -> dict:
        """Listas declaradas de um pacote, para relatórios (`plus deps`)."""
        decl = self.recipes.load(package)
        return {
            "name": decl.name,
            "required": list(decl.required),
            "optional": list(decl.optional),
            "recommended": list(decl.recommended),
        }

    def find_missing(self, package: str, installed: Iterable[str],
                     order: Optional[List[str]] = None) -> List[str]:
        """Pacotes da ordem resolvida que ainda não estão instalados (reusa `order` se já resolvida)."""
        installed = set(installed)
        if order is None:
            order = self.resolve(package)
        return [p for p in order if p not in installed]
