"""Tests for the build pipeline: archives, extract, patch, compile, install, uninstall."""

import io
import os
import tarfile
import zipfile

import pytest

from plus.modules.build import BuildPipeline, BuildPipelineFailure, extract_archive, find_archive
from plus.modules.config import config
from plus.modules.fakeroot import CommandError, CommandResult
from plus.modules.verify import ChecksumMismatch


class FakeRunner:
    """Records commands instead of executing them; fails commands starting with `fail_on`."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.commands = []

    def run(self, command, cwd=None, env=None, timeout=None, check=True, fakeroot=False, stdin=None):
        self.commands.append((list(command), cwd, fakeroot))
        rc = 2 if self.fail_on and command[0] == self.fail_on else 0
        result = CommandResult(list(command), rc, "", "boom" if rc else "", 0)
        if rc and check:
            raise CommandError(result)
        return result


def make_tarball(path, top="zlib-1.3", files=None):
    files = files or {"Makefile": b"all:\n", "zlib.c": b"int main;\n"}
    with tarfile.open(path, "w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(f"{top}/{name}" if top else name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return str(path)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def build_pipeline(runner):
    return BuildPipeline(runner=runner)


class TestArchives:

    def test_tarball_with_single_top_dir(self, tmp_path):
        archive = make_tarball(tmp_path / "zlib.tar.gz")
        source_dir = extract_archive(archive, str(tmp_path / "out"))
        assert source_dir == str(tmp_path / "out" / "zlib-1.3")
        assert os.path.isfile(os.path.join(source_dir, "Makefile"))

    def test_flat_zip_extracts_to_dest(self, tmp_path):
        archive = tmp_path / "flat.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("configure", "#!/bin/sh\n")
            zf.writestr("Makefile", "all:\n")
        dest = str(tmp_path / "out")
        assert extract_archive(str(archive), dest) == dest

    def test_unknown_format(self, tmp_path):
        junk = tmp_path / "junk.tar.gz"
        junk.write_bytes(b"not an archive")
        with pytest.raises(ValueError):
            extract_archive(str(junk), str(tmp_path / "out"))

    def test_find_archive(self, tmp_path):
        (tmp_path / "README").write_text("x")
        (tmp_path / "b-1.0.tar.xz").write_text("x")
        (tmp_path / "a-1.0.tar.gz").write_text("x")
        assert find_archive(str(tmp_path)) == str(tmp_path / "a-1.0.tar.gz")
        assert find_archive(str(tmp_path), "b-1.0.tar.xz") == str(tmp_path / "b-1.0.tar.xz")
        assert find_archive(str(tmp_path), "c.zip") is None


class TestExtract:

    def test_extracts_synced_archive_and_records_checksum(self, build_pipeline):
        sync = os.path.join(config.paths()["sync_dir"], "zlib")
        os.makedirs(sync)
        archive = make_tarball(os.path.join(sync, "zlib-1.3.tar.gz"))
        source_dir = build_pipeline.extract("zlib")
        assert source_dir == os.path.join(config.paths()["build_dir"], "zlib", "zlib-1.3")
        assert os.path.isfile(build_pipeline.verifier.sum_file(archive))

    def test_tampered_archive_is_refused(self, build_pipeline):
        sync = os.path.join(config.paths()["sync_dir"], "zlib")
        os.makedirs(sync)
        archive = make_tarball(os.path.join(sync, "zlib-1.3.tar.gz"))
        build_pipeline.extract("zlib")
        make_tarball(archive, files={"Makefile": b"evil:\n"})
        with pytest.raises(ChecksumMismatch):
            build_pipeline.extract("zlib")

    def test_git_checkout_is_copied_without_git_dir(self, build_pipeline):
        sync = os.path.join(config.paths()["sync_dir"], "tool")
        os.makedirs(os.path.join(sync, ".git"))
        with open(os.path.join(sync, "Makefile"), "w", encoding="utf-8") as fh:
            fh.write("all:\n")
        dest = build_pipeline.extract("tool")
        assert os.path.isfile(os.path.join(dest, "Makefile"))
        assert not os.path.exists(os.path.join(dest, ".git"))

    def test_nothing_synced(self, build_pipeline):
        with pytest.raises(BuildPipelineFailure) as exc:
            build_pipeline.extract("ghost")
        assert exc.value.step == "extract"


class TestSteps:

    def test_no_patch_dir(self, build_pipeline, tmp_path):
        assert build_pipeline.apply_patches(str(tmp_path), str(tmp_path / "none")) == 0
        assert build_pipeline.apply_patches(str(tmp_path), None) == 0

    def test_patches_applied_in_name_order(self, build_pipeline, runner, tmp_path):
        patches = tmp_path / "patches"
        patches.mkdir()
        (patches / "02-fix.patch").write_text("")
        (patches / "01-cve.patch").write_text("")
        (patches / "notes.txt").write_text("")
        assert build_pipeline.apply_patches("/src/zlib", str(patches)) == 2
        assert [cmd[-1] for cmd, _, _ in runner.commands] == [
            str(patches / "01-cve.patch"), str(patches / "02-fix.patch"),
        ]

    def test_failed_patch(self, tmp_path):
        patches = tmp_path / "patches"
        patches.mkdir()
        (patches / "01.patch").write_text("")
        pipeline = BuildPipeline(runner=FakeRunner(fail_on="patch"))
        with pytest.raises(BuildPipelineFailure, match="patch") as exc:
            pipeline.apply_patches("/build/zlib/zlib-1.3", str(patches), package="zlib")
        assert exc.value.package == "zlib"
        assert "zlib-1.3" not in str(exc.value).split(":")[0]

    def test_compile_runs_configure_then_make(self, build_pipeline, runner, tmp_path):
        (tmp_path / "configure").write_text("#!/bin/sh\n")
        assert build_pipeline.compile(str(tmp_path), {"cflags": "-O2", "ldflags": "-s"})
        assert [cmd for cmd, _, _ in runner.commands] == [
            ["./configure"], ["make", "CFLAGS=-O2", "LDFLAGS=-s"],
        ]

    def test_compile_failure_is_reported(self, tmp_path):
        pipeline = BuildPipeline(runner=FakeRunner(fail_on="make"))
        assert pipeline.compile(str(tmp_path), {}) is False

    def test_install_uses_fakeroot_and_destdir(self, build_pipeline, runner):
        assert build_pipeline.install_to("/src/zlib", "/tmp/stage")
        assert runner.commands == [(["make", "install", "DESTDIR=/tmp/stage"], "/src/zlib", True)]


class TestUninstall:

    def test_without_build_tree(self, build_pipeline, runner):
        assert build_pipeline.uninstall("ghost") is False
        assert runner.commands == []

    def test_runs_make_uninstall_and_drops_tree(self, build_pipeline, runner):
        tree = build_pipeline.build_dir_for("zlib")
        os.makedirs(os.path.join(tree, "zlib-1.3"))
        with open(os.path.join(tree, "zlib-1.3", "Makefile"), "w", encoding="utf-8") as fh:
            fh.write("uninstall:\n")
        assert build_pipeline.uninstall("zlib") is True
        assert runner.commands[0][0] == ["make", "uninstall"]
        assert not os.path.exists(tree)

    def test_failed_make_uninstall_still_drops_tree(self):
        pipeline = BuildPipeline(runner=FakeRunner(fail_on="make"))
        tree = pipeline.build_dir_for("zlib")
        os.makedirs(tree)
        with open(os.path.join(tree, "Makefile"), "w", encoding="utf-8") as fh:
            fh.write("")
        assert pipeline.uninstall("zlib") is False
        assert not os.path.exists(tree)
