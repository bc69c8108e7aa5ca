"""Shared fixtures: isolated PLUS root per test, declaration writer, fake pipeline."""

import os

import pytest

from plus.modules.build import BuildPipelineFailure
from plus.modules.config import config
from plus.modules.hooks import HookManager
from plus.modules.lifecycle import BuildOptions, Orchestrator
from plus.modules.recipe import RecipeManager
from plus.modules.registry import PackageRegistry


@pytest.fixture(autouse=True)
def plus_root(tmp_path):
    root = tmp_path / "plus"
    config.set("paths", "root", str(root))
    config.set("logging", "log_to_console", "no")
    yield root
    config.reload()


@pytest.fixture
def declare(plus_root):
    """declare("bar", required=["foo"]) writes <src>/bar/bar.dep etc."""

    def _declare(name, required=(), optional=(), recommended=(), recipe_yaml=None):
        pkg_dir = os.path.join(config.paths()["src_dir"], name)
        os.makedirs(pkg_dir, exist_ok=True)
        for suffix, deps in ((".dep", required), (".optdep", optional), (".recom", recommended)):
            if deps:
                with open(os.path.join(pkg_dir, name + suffix), "w", encoding="utf-8") as fh:
                    fh.write("\n".join(deps) + "\n")
        if recipe_yaml is not None:
            with open(os.path.join(pkg_dir, "recipe.yaml"), "w", encoding="utf-8") as fh:
                fh.write(recipe_yaml)
        return pkg_dir

    return _declare


class FakePipeline:
    """Records every call; can be told to fail a step for one package."""

    def __init__(self, fail_on=None, fail_step="compile", uninstall_error=False):
        self.fail_on = fail_on
        self.fail_step = fail_step
        self.uninstall_error = uninstall_error
        self.calls = []
        self.flags = {}

    def _fails(self, step, pkg):
        return self.fail_on == pkg and self.fail_step == step

    def extract(self, pkg):
        self.calls.append(("extract", pkg))
        if self._fails("extract", pkg):
            raise BuildPipelineFailure(pkg, "extract", "archive missing")
        return f"/fake/build/{pkg}"

    def apply_patches(self, source_dir, patch_dir, package=None):
        self.calls.append(("patch", package or os.path.basename(source_dir)))
        return 0

    def compile(self, source_dir, flags):
        pkg = os.path.basename(source_dir)
        self.calls.append(("compile", pkg))
        self.flags[pkg] = dict(flags)
        return not self._fails("compile", pkg)

    def install_to(self, source_dir, dest_dir):
        pkg = os.path.basename(source_dir)
        self.calls.append(("install", pkg))
        return not self._fails("install", pkg)

    def uninstall(self, pkg):
        self.calls.append(("uninstall", pkg))
        if self.uninstall_error:
            raise RuntimeError("make uninstall exploded")
        return True

    def steps_for(self, step):
        return [pkg for s, pkg in self.calls if s == step]


@pytest.fixture
def pipeline():
    return FakePipeline()


@pytest.fixture
def make_orchestrator(plus_root):
    def _make(pipeline=None, hooks=None, syncer=None, **options):
        recipes = RecipeManager()
        return Orchestrator(
            options=BuildOptions(**options),
            recipes=recipes,
            registry=PackageRegistry(recipes=recipes),
            pipeline=pipeline or FakePipeline(),
            hooks=hooks or HookManager(),
            syncer=syncer,
        )

    return _make
