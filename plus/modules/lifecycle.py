# plus/modules/lifecycle.py
"""
Orquestrador do ciclo de vida: install / build / remove / upgrade / sync.

Install:  PENDING -> RESOLVING -> BUILT -> REGISTERED   (falha: ABORTED)
Remove:   PENDING -> DEPENDENTS_CHECKED -> UNINSTALLED -> DEREGISTERED -> ORPHAN_SWEPT
          (dependentes sem --force: BLOCKED)

O registro só é alterado depois que toda a fila de build terminou;
uma falha no meio da fila não registra nenhum pacote dela.
"""

from __future__ import annotations
import os
import threading
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from plus.modules import logger as _logger
from plus.modules.build import BuildPipeline, BuildPipelineFailure
from plus.modules.config import config
from plus.modules.hooks import HookError, HookManager
from plus.modules.recipe import RecipeManager, load_packages_list
from plus.modules.registry import PackageRegistry
from plus.modules.resolver import DependencyResolver
from plus.modules.sync import SyncError, SyncManager
from plus.modules.utils import PlusError


class State(str, Enum):
    PENDING = "PENDING"
    RESOLVING = "RESOLVING"
    BUILT = "BUILT"
    REGISTERED = "REGISTERED"
    DEPENDENTS_CHECKED = "DEPENDENTS_CHECKED"
    UNINSTALLED = "UNINSTALLED"
    DEREGISTERED = "DEREGISTERED"
    ORPHAN_SWEPT = "ORPHAN_SWEPT"
    SYNCED = "SYNCED"
    BLOCKED = "BLOCKED"
    ABORTED = "ABORTED"


class BlockedRemoval(PlusError):
    def __init__(self, package: str, dependents):
        self.package = package
        self.dependents = sorted(dependents)
        super().__init__(
            f"REMOVE Package {package} is required by: {', '.join(self.dependents)}. Use --force to override."
        )


class NotInstalled(PlusError):
    def __init__(self, package: str, operation: str):
        self.package = package
        super().__init__(f"{operation.upper()} Package {package} is not installed")


@dataclass
class BuildOptions:
    dry_run: bool = False
    no_install: bool = False
    cflags: Optional[str] = None
    ldflags: Optional[str] = None
    destdir: Optional[str] = None
    skip_recommended: Optional[bool] = None
    jobs: Optional[int] = None

    def __post_init__(self):
        if self.destdir is None:
            self.destdir = config.get("build", "destdir", fallback="/")
        if self.skip_recommended is None:
            self.skip_recommended = config.getboolean("deps", "skip_recommended", fallback=False)
        if self.jobs is None:
            self.jobs = max(1, config.getint("build", "jobs", fallback=1))


@dataclass
class OperationResult:
    operation: str
    package: str
    state: State = State.PENDING
    order: List[str] = field(default_factory=list)
    built: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    registered: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.state not in (State.ABORTED, State.BLOCKED)


class Orchestrator:
    def __init__(self,
                 options: Optional[BuildOptions] = None,
                 recipes: Optional[RecipeManager] = None,
                 registry: Optional[PackageRegistry] = None,
                 pipeline=None,
                 hooks: Optional[HookManager] = None,
                 syncer: Optional[SyncManager] = None):
        self.options = options or BuildOptions()
        self.recipes = recipes or RecipeManager()
        self.registry = registry or PackageRegistry(recipes=self.recipes)
        self.pipeline = pipeline or BuildPipeline(recipes=self.recipes, dry_run=self.options.dry_run)
        self.hooks = hooks or HookManager(dry_run=self.options.dry_run)
        self.syncer = syncer or SyncManager(dry_run=self.options.dry_run)
        self.patches_dir = config.paths()["patches_dir"]
        self.log = _logger.Logger("plus")

        # builds do mesmo pacote nunca se sobrepõem (upgrade all em paralelo)
        self._build_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    # ---------------------------
    # Hooks
    # ---------------------------
    def _pre(self, stage: str, pkg: str):
        if self.options.dry_run:
            return
        self.hooks.run_hook(HookManager.stage_name("pre", stage), pkg)

    def _post(self, stage: str, pkg: str):
        if self.options.dry_run:
            return
        try:
            self.hooks.run_hook(HookManager.stage_name("post", stage), pkg)
        except HookError as e:
            self.log.error(f"HOOK {e} (ignored, work already done)")

    def _abort(self, result: OperationResult, error: BaseException) -> OperationResult:
        result.state = State.ABORTED
        result.error = error
        self.log.error(f"{result.operation.upper()} Aborted {result.package}: {error}")
        return result

    # ---------------------------
    # Build de um pacote
    # ---------------------------
    def _lock_for(self, pkg: str) -> threading.Lock:
        with self._locks_guard:
            return self._build_locks[pkg]

    def _flags_for(self, pkg: str) -> Dict[str, str]:
        meta = self.recipes.load(pkg).meta
        cflags = self.options.cflags
        if cflags is None:
            cflags = meta.get("cflags", config.get("build", "cflags", fallback=""))
        ldflags = self.options.ldflags
        if ldflags is None:
            ldflags = meta.get("ldflags", config.get("build", "ldflags", fallback=""))
        return {"cflags": str(cflags), "ldflags": str(ldflags)}

    def _build_one(self, pkg: str):
        """extract -> patch -> compile -> install (com hooks build/install)."""
        with self._lock_for(pkg):
            self.log.info(f"BUILD Starting build for {pkg}")
            self._pre("build", pkg)
            source_dir = self.pipeline.extract(pkg)
            self.pipeline.apply_patches(source_dir, os.path.join(self.patches_dir, pkg), package=pkg)
            if not self.pipeline.compile(source_dir, self._flags_for(pkg)):
                raise BuildPipelineFailure(pkg, "compile", "compiler reported failure")
            self._post("build", pkg)

            if self.options.no_install:
                self.log.info(f"BUILD Completed for {pkg} (--no-install)")
                return
            self._pre("install", pkg)
            if not self.pipeline.install_to(source_dir, self.options.destdir):
                raise BuildPipelineFailure(pkg, "install", f"install to {self.options.destdir} failed")
            self._post("install", pkg)
            self.log.info(f"BUILD Completed for {pkg}")

    def _resolver(self) -> DependencyResolver:
        # um resolver (e um ResolutionState) por operação de topo
        return DependencyResolver(self.recipes, skip_recommended=self.options.skip_recommended)

    # ---------------------------
    # Install
    # ---------------------------
    def install(self, pkg: str, explicit: bool = True) -> OperationResult:
        result = OperationResult("install", pkg, dry_run=self.options.dry_run)
        self.log.info(f"INSTALL Installing {pkg}")
        try:
            result.state = State.RESOLVING
            result.order = self._resolver().resolve(pkg)
            installed = self.registry.list_installed()
            queue = [p for p in result.order if p == pkg or p not in installed]
            result.skipped = [p for p in result.order if p not in queue]
            for p in result.skipped:
                self.log.info(f"INSTALL {p} already installed, skipping")

            if self.options.dry_run:
                self.log.info(f"[DRY-RUN] Would build, in order: {', '.join(queue)}")
                return result

            for p in queue:
                self._build_one(p)
                result.built.append(p)
            result.state = State.BUILT

            if self.options.no_install:
                self.log.info(f"INSTALL --no-install: {pkg} built but not registered")
                return result

            records = self.registry.record_installs(
                [(p, explicit if p == pkg else False) for p in queue]
            )
            result.registered = [rec.name for rec in records]
            result.state = State.REGISTERED
            self.log.success(f"INSTALL Completed for {pkg}")
        except (PlusError, OSError) as e:
            return self._abort(result, e)
        return result

    # ---------------------------
    # Build isolado (sem registro)
    # ---------------------------
    def build(self, pkg: str) -> OperationResult:
        result = OperationResult("build", pkg, dry_run=self.options.dry_run)
        try:
            result.state = State.RESOLVING
            result.order = self._resolver().resolve(pkg)
            missing = [p for p in result.order[:-1] if not self.registry.is_installed(p)]
            if missing:
                self.log.warning(f"BUILD Dependencies of {pkg} not installed: {', '.join(missing)}")
            if self.options.dry_run:
                self.log.info(f"[DRY-RUN] Would build {pkg}")
                return result
            self._build_one(pkg)
            result.built.append(pkg)
            result.state = State.BUILT
        except (PlusError, OSError) as e:
            return self._abort(result, e)
        return result

    # ---------------------------
    # Remove
    # ---------------------------
    def remove(self, pkg: str, force: bool = False) -> OperationResult:
        result = OperationResult("remove", pkg, dry_run=self.options.dry_run)
        self.log.info(f"REMOVE Removing {pkg}")
        try:
            if not self.registry.is_installed(pkg):
                raise NotInstalled(pkg, "remove")

            dependents = self.registry.find_dependents(pkg)
            result.dependents = sorted(dependents)
            result.state = State.DEPENDENTS_CHECKED
            if dependents and not force:
                result.state = State.BLOCKED
                result.error = BlockedRemoval(pkg, dependents)
                self.log.warning(str(result.error))
                return result
            if dependents:
                self.log.warning(f"REMOVE Forcing removal of {pkg}; still required by {', '.join(result.dependents)}")
            self._pre("remove", pkg)

            if self.options.dry_run:
                self.log.info(f"[DRY-RUN] Would uninstall and deregister {pkg}")
                return result

            try:
                self.pipeline.uninstall(pkg)
            except Exception as e:
                self.log.warning(f"REMOVE Uninstall of {pkg} failed (ignored): {e}")
            result.state = State.UNINSTALLED

            self.registry.remove_record(pkg)
            result.state = State.DEREGISTERED
            self._post("remove", pkg)
            self.log.info(f"REMOVE Completed for {pkg}")

            self.log.info("ORPHANS Checking for orphan packages")
            result.orphans = sorted(self.registry.find_orphans())
            result.state = State.ORPHAN_SWEPT
        except (PlusError, OSError) as e:
            return self._abort(result, e)
        return result

    # ---------------------------
    # Upgrade
    # ---------------------------
    def upgrade(self, pkg: str) -> OperationResult:
        """Sem comparação de versão: sempre refaz o caminho de install."""
        self.log.info(f"UPGRADE Upgrading {pkg}")
        current = self.registry.latest_record(pkg)
        if current is None:
            return self._abort(OperationResult("upgrade", pkg, dry_run=self.options.dry_run),
                               NotInstalled(pkg, "upgrade"))
        self.log.debug(f"UPGRADE {pkg} last installed at {current.timestamp} ({current.reason})")
        try:
            self._pre("upgrade", pkg)
        except HookError as e:
            return self._abort(OperationResult("upgrade", pkg, dry_run=self.options.dry_run), e)

        result = self.install(pkg, explicit=current.explicit)
        result.operation = "upgrade"
        if result.ok:
            self._post("upgrade", pkg)
            self.log.info(f"UPGRADE Completed for {pkg}")
        return result

    def upgrade_all(self) -> List[OperationResult]:
        packages = self.registry.installed_in_order()
        self.log.info(f"UPGRADE Starting system upgrade ({len(packages)} packages)")
        if self.options.jobs > 1 and len(packages) > 1:
            with ThreadPoolExecutor(max_workers=self.options.jobs) as ex:
                results = list(ex.map(self._upgrade_isolated, packages))
        else:
            results = [self._upgrade_isolated(p) for p in packages]
        failed = [r.package for r in results if not r.ok]
        if failed:
            self.log.error(f"UPGRADE System upgrade finished with failures: {', '.join(failed)}")
        else:
            self.log.success("UPGRADE System upgrade completed")
        return results

    def _upgrade_isolated(self, pkg: str) -> OperationResult:
        # uma falha num pacote não interrompe o lote
        try:
            return self.upgrade(pkg)
        except Exception as e:
            self.log.error(f"UPGRADE Unexpected error upgrading {pkg}: {e}")
            result = OperationResult("upgrade", pkg, dry_run=self.options.dry_run)
            result.state = State.ABORTED
            result.error = e
            return result

    # ---------------------------
    # Sync
    # ---------------------------
    def sync(self, pkg: str, url: Optional[str] = None, branch: Optional[str] = None) -> OperationResult:
        result = OperationResult("sync", pkg, dry_run=self.options.dry_run)
        self.log.info(f"SYNC Starting sync for {pkg}")
        try:
            if not url:
                decl = self.recipes.load(pkg)
                url, branch = decl.source_url, branch or decl.branch
            if not url:
                raise SyncError(f"SYNC No source URL known for {pkg}")
            self._pre("sync", pkg)
            self.syncer.fetch(pkg, url, branch)
            self._post("sync", pkg)
            result.state = State.SYNCED
            self.log.info(f"SYNC Completed for {pkg}")
        except (PlusError, OSError) as e:
            return self._abort(result, e)
        return result

    def sync_all(self) -> List[OperationResult]:
        packages_list = config.paths()["packages_list"]
        if not os.path.isfile(packages_list):
            raise SyncError(f"SYNC packages.list not found: {packages_list}")
        entries = load_packages_list(packages_list)
        jobs = self.options.jobs

        def one(item):
            name, entry = item
            return self.sync(name, entry["url"], entry["branch"])

        if jobs > 1 and len(entries) > 1:
            with ThreadPoolExecutor(max_workers=jobs) as ex:
                return list(ex.map(one, entries.items()))
        return [one(item) for item in entries.items()]
