# plus/modules/build.py
"""
Pipeline de build de um pacote a partir do fonte sincronizado.

Etapas (chamadas em ordem pelo orquestrador em lifecycle.py):
  extract(pkg)                    -> diretório do fonte em <workdir>/build/<pkg>
  apply_patches(src, patch_dir, package) -> patch -p1 para cada *.patch
  compile(src, flags)             -> ./configure (se houver) + make CFLAGS/LDFLAGS
  install_to(src, destdir)        -> fakeroot make install DESTDIR=...
  uninstall(pkg)                  -> make uninstall (best-effort) + remove a árvore

Qualquer objeto com esses cinco métodos serve como pipeline (os testes usam um fake).
"""

from __future__ import annotations
import glob
import os
import shutil
import tarfile
import zipfile
from typing import Dict, List, Optional

from plus.modules import logger as _logger
from plus.modules import fakeroot as _fakeroot
from plus.modules.config import config
from plus.modules.recipe import RecipeManager
from plus.modules.utils import PlusError, Utils
from plus.modules.verify import Verifier

ARCHIVE_PATTERNS = ("*.tar", "*.tar.*", "*.tgz", "*.tbz2", "*.txz", "*.zip")


class BuildPipelineFailure(PlusError):
    def __init__(self, package: str, step: str, reason: str):
        self.package = package
        self.step = step
        super().__init__(f"BUILD {step} failed for {package}: {reason}")


def find_archive(directory: str, name: Optional[str] = None) -> Optional[str]:
    """Primeiro arquivo de fonte em `directory` (ou o nomeado em recipe.yaml)."""
    if name:
        candidate = os.path.join(directory, name)
        return candidate if os.path.isfile(candidate) else None
    found: List[str] = []
    for pattern in ARCHIVE_PATTERNS:
        found.extend(p for p in glob.glob(os.path.join(directory, pattern)) if os.path.isfile(p))
    return sorted(set(found))[0] if found else None


def extract_archive(archive: str, dest_dir: str) -> str:
    """
    Descompacta tar.* ou zip em dest_dir. Se o arquivo tem um único diretório
    no topo (caso comum: foo-1.0/), devolve esse diretório.
    """
    Utils.ensure_dir(dest_dir)
    if zipfile.is_zipfile(archive):
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(dest_dir)
    elif tarfile.is_tarfile(archive):
        with tarfile.open(archive, "r:*") as tf:
            if hasattr(tarfile, "data_filter"):
                tf.extractall(dest_dir, filter="data")
            else:
                tf.extractall(dest_dir)
    else:
        raise ValueError(f"Unsupported archive format: {archive}")

    entries = [e for e in os.listdir(dest_dir) if not e.startswith(".")]
    if len(entries) == 1 and os.path.isdir(os.path.join(dest_dir, entries[0])):
        return os.path.join(dest_dir, entries[0])
    return dest_dir


class BuildPipeline:
    def __init__(self,
                 recipes: Optional[RecipeManager] = None,
                 runner: Optional[_fakeroot.Fakeroot] = None,
                 verifier: Optional[Verifier] = None,
                 dry_run: bool = False):
        paths = config.paths()
        self.sync_dir = paths["sync_dir"]
        self.build_root = paths["build_dir"]
        self.recipes = recipes or RecipeManager()
        self.runner = runner or _fakeroot.Fakeroot(
            dry_run=dry_run,
            enabled=config.getboolean("build", "use_fakeroot", fallback=True),
        )
        self.verifier = verifier or Verifier()
        self.dry_run = dry_run
        self.log = _logger.Logger("build")

    def build_dir_for(self, pkg: str) -> str:
        return os.path.join(self.build_root, pkg)

    # ---------------------------
    # Extract
    # ---------------------------
    def extract(self, pkg: str) -> str:
        src = os.path.join(self.sync_dir, pkg)
        dest = self.build_dir_for(pkg)
        decl = self.recipes.load(pkg)

        archive = find_archive(src, decl.archive) if os.path.isdir(src) else None
        if os.path.isdir(dest):
            shutil.rmtree(dest)

        if archive:
            # ChecksumMismatch sobe direto: aborta o build que consumiria o arquivo
            self.verifier.check(archive)
            try:
                source_dir = extract_archive(archive, dest)
            except (OSError, ValueError, tarfile.TarError, zipfile.BadZipFile) as e:
                raise BuildPipelineFailure(pkg, "extract", str(e))
            self.log.info(f"EXTRACT Extracted {archive} to {source_dir}")
            return source_dir

        if os.path.isdir(os.path.join(src, ".git")):
            shutil.copytree(src, dest, ignore=shutil.ignore_patterns(".git"))
            self.log.info(f"EXTRACT Copied git checkout {src} to {dest}")
            return dest

        raise BuildPipelineFailure(pkg, "extract", f"Source archive not found in {src}")

    # ---------------------------
    # Patches
    # ---------------------------
    def apply_patches(self, source_dir: str, patch_dir: Optional[str], package: Optional[str] = None) -> int:
        package = package or os.path.basename(source_dir)
        if not patch_dir or not os.path.isdir(patch_dir):
            self.log.info(f"PATCH No patches to apply in {patch_dir}")
            return 0
        applied = 0
        for patch in sorted(glob.glob(os.path.join(patch_dir, "*.patch"))):
            self.log.info(f"PATCH Applying {os.path.basename(patch)}")
            try:
                self.runner.run(["patch", "-d", source_dir, "-p1", "-i", patch])
            except _fakeroot.CommandError as e:
                raise BuildPipelineFailure(package, "patch", str(e))
            applied += 1
        return applied

    # ---------------------------
    # Compile / install
    # ---------------------------
    def compile(self, source_dir: str, flags: Dict[str, str]) -> bool:
        cflags = flags.get("cflags", "")
        ldflags = flags.get("ldflags", "")
        self.log.info(f"BUILD Compiling {source_dir} with CFLAGS='{cflags}' LDFLAGS='{ldflags}'")
        env = os.environ.copy()
        env["CFLAGS"] = cflags
        env["LDFLAGS"] = ldflags
        try:
            if os.path.isfile(os.path.join(source_dir, "configure")):
                self.runner.run(["./configure"], cwd=source_dir, env=env)
            self.runner.run(["make", f"CFLAGS={cflags}", f"LDFLAGS={ldflags}"], cwd=source_dir, env=env)
        except _fakeroot.CommandError as e:
            self.log.error(f"BUILD {e}")
            return False
        return True

    def install_to(self, source_dir: str, dest_dir: str) -> bool:
        self.log.info(f"INSTALL Installing {source_dir} to {dest_dir}")
        try:
            self.runner.run(["make", "install", f"DESTDIR={dest_dir}"], cwd=source_dir, fakeroot=True)
        except _fakeroot.CommandError as e:
            self.log.error(f"INSTALL {e}")
            return False
        return True

    # ---------------------------
    # Uninstall (best-effort)
    # ---------------------------
    def uninstall(self, pkg: str) -> bool:
        tree = self.build_dir_for(pkg)
        if not os.path.isdir(tree):
            self.log.warning(f"REMOVE No build tree for {pkg}; nothing to uninstall")
            return False
        entries = [e for e in os.listdir(tree) if not e.startswith(".")]
        source_dir = tree
        if len(entries) == 1 and os.path.isdir(os.path.join(tree, entries[0])):
            source_dir = os.path.join(tree, entries[0])

        ok = False
        if os.path.isfile(os.path.join(source_dir, "Makefile")):
            self.log.info(f"REMOVE Undoing installation of {pkg}")
            result = self.runner.run(["make", "uninstall"], cwd=source_dir, fakeroot=True, check=False)
            ok = result.ok()
            if not ok:
                self.log.warning(f"REMOVE make uninstall failed for {pkg} (ignored)")

        self.log.info(f"REMOVE Removing files of {pkg}")
        if not self.dry_run:
            shutil.rmtree(tree, ignore_errors=True)
        return ok
