# plus/modules/verify.py

import hashlib
import os

from plus.modules import logger as _logger
from plus.modules.config import config
from plus.modules.utils import PlusError, Utils

MATCH = "match"
MISMATCH = "mismatch"
GENERATED = "generated"


class ChecksumMismatch(PlusError):
    def __init__(self, file_path, expected, actual):
        self.file_path = file_path
        self.expected = expected
        self.actual = actual
        super().__init__(f"SHA256 mismatch for {file_path}: expected {expected}, got {actual}")


class Verifier:
    """
    Verifica integridade de fontes usando SHA256SUM.
    O checksum de referência fica em <workdir>/sha256/<arquivo>.sha256;
    na primeira vez que um arquivo é visto, ele é gerado.
    """

    def __init__(self, sha256_dir=None):
        self.sha256_dir = sha256_dir or config.paths()["sha256_dir"]
        self.log = _logger.Logger("verify")

    def sha256sum(self, file_path):
        """
        Calcula o SHA256 de um arquivo.
        """
        sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                sha256.update(chunk)
        return sha256.hexdigest()

    def sum_file(self, file_path):
        return os.path.join(self.sha256_dir, os.path.basename(file_path) + ".sha256")

    def verify_or_generate(self, file_path):
        """
        Retorna MATCH, MISMATCH ou GENERATED.
        """
        return self._compare(file_path)[0]

    def _compare(self, file_path):
        """(status, esperado, atual). Arquivo .sha256 vazio vale como esperado ""."""
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"SHA256 Check failed: {file_path} does not exist")

        actual = self.sha256sum(file_path)
        sum_file = self.sum_file(file_path)
        if os.path.exists(sum_file):
            with open(sum_file, "r", encoding="utf-8", errors="replace") as f:
                fields = f.read().split()
            expected = fields[0] if fields else ""
            if expected != actual:
                self.log.error(f"SHA256 mismatch for {file_path}")
                return MISMATCH, expected, actual
            self.log.info(f"SHA256 Verified for {file_path}")
            return MATCH, expected, actual

        Utils.ensure_dir(self.sha256_dir)
        Utils.atomic_write(sum_file, f"{actual}  {file_path}\n")
        self.log.info(f"SHA256 Generated for {file_path}")
        return GENERATED, actual, actual

    def check(self, file_path):
        """Como verify_or_generate, mas divergência vira ChecksumMismatch."""
        status, expected, actual = self._compare(file_path)
        if status == MISMATCH:
            raise ChecksumMismatch(file_path, expected, actual)
        return status
