"""Tests for SHA256 verification of source archives."""

import hashlib
import os

import pytest

from plus.modules.verify import GENERATED, MATCH, MISMATCH, ChecksumMismatch, Verifier


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "zlib-1.3.tar.gz"
    path.write_bytes(b"pretend tarball")
    return str(path)


class TestVerifier:

    def test_first_sight_generates_checksum(self, archive, tmp_path):
        verifier = Verifier(sha256_dir=str(tmp_path / "sha256"))
        assert verifier.verify_or_generate(archive) == GENERATED
        with open(verifier.sum_file(archive), encoding="utf-8") as fh:
            digest, path = fh.read().split()
        assert digest == hashlib.sha256(b"pretend tarball").hexdigest()
        assert path == archive

    def test_unchanged_file_matches(self, archive, tmp_path):
        verifier = Verifier(sha256_dir=str(tmp_path / "sha256"))
        verifier.verify_or_generate(archive)
        assert verifier.verify_or_generate(archive) == MATCH
        assert verifier.check(archive) == MATCH

    def test_changed_file_is_a_mismatch(self, archive, tmp_path):
        verifier = Verifier(sha256_dir=str(tmp_path / "sha256"))
        verifier.verify_or_generate(archive)
        with open(archive, "ab") as fh:
            fh.write(b"tampered")
        assert verifier.verify_or_generate(archive) == MISMATCH
        with pytest.raises(ChecksumMismatch) as exc:
            verifier.check(archive)
        assert exc.value.expected == hashlib.sha256(b"pretend tarball").hexdigest()
        assert exc.value.actual == verifier.sha256sum(archive)

    def test_missing_file(self, tmp_path):
        verifier = Verifier(sha256_dir=str(tmp_path / "sha256"))
        with pytest.raises(FileNotFoundError):
            verifier.verify_or_generate(os.path.join(str(tmp_path), "nope.tar.gz"))

    @pytest.mark.parametrize("content", ["", "   \n\n"])
    def test_blank_checksum_file_is_a_mismatch(self, archive, tmp_path, content):
        verifier = Verifier(sha256_dir=str(tmp_path / "sha256"))
        os.makedirs(verifier.sha256_dir)
        with open(verifier.sum_file(archive), "w", encoding="utf-8") as fh:
            fh.write(content)
        assert verifier.verify_or_generate(archive) == MISMATCH
        with pytest.raises(ChecksumMismatch) as exc:
            verifier.check(archive)
        assert exc.value.expected == ""
        assert exc.value.actual == verifier.sha256sum(archive)
