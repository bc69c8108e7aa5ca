# plus/modules/sync.py
"""
sync.py - obtenção dos fontes de cada pacote.

- URL git (git://, git@..., *.git): clone ou fetch/checkout/pull em <sync_dir>/<pkg>
- Demais URLs (http/https/ftp/file): download com urllib para <sync_dir>/<pkg>/<arquivo>
- sync_all lê <root>/packages.list ("pkg url [branch]")
- Hooks pre-sync/post-sync ficam a cargo do orquestrador (lifecycle.py)
"""

import os
import shutil
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional

from plus.modules import logger as _logger
from plus.modules import fakeroot as _fakeroot
from plus.modules.config import config
from plus.modules.utils import PlusError, Utils


class SyncError(PlusError):
    pass


def is_git_url(url: str) -> bool:
    return url.startswith(("git://", "git@", "git+")) or url.endswith(".git")


class SyncManager:
    def __init__(self, sync_dir: Optional[str] = None,
                 runner: Optional[_fakeroot.Fakeroot] = None,
                 dry_run: bool = False):
        self.sync_dir = os.path.abspath(sync_dir or config.paths()["sync_dir"])
        self.default_branch = config.get("sync", "default_branch", fallback="main")
        self.dry_run = dry_run
        self.runner = runner or _fakeroot.Fakeroot(dry_run=dry_run)
        self.log = _logger.Logger("sync")

    def _git(self, args, cwd=None):
        try:
            return self.runner.run(["git"] + args, cwd=cwd)
        except _fakeroot.CommandError as e:
            raise SyncError(str(e))

    def fetch(self, pkg: str, url: str, branch: Optional[str] = None) -> str:
        """
        Baixa/atualiza o fonte de `pkg`. Retorna o diretório (git) ou o arquivo baixado.
        """
        branch = branch or self.default_branch
        dest = os.path.join(self.sync_dir, pkg)
        if not self.dry_run:
            Utils.ensure_dir(dest)

        if is_git_url(url):
            url = url[len("git+"):] if url.startswith("git+") else url
            if os.path.isdir(os.path.join(dest, ".git")):
                self.log.info(f"SYNC {pkg}: git fetch")
                self._git(["-C", dest, "fetch", "--all"])
                self._git(["-C", dest, "checkout", branch])
                self._git(["-C", dest, "pull", "origin", branch])
            else:
                self.log.info(f"SYNC {pkg}: git clone {url} branch {branch}")
                self._git(["clone", "-b", branch, url, dest])
            return dest

        filename = os.path.basename(urllib.parse.urlparse(url).path) or f"{pkg}.tar.gz"
        target = os.path.join(dest, filename)
        self.log.info(f"SYNC {pkg}: downloading {url} to {target}")
        if self.dry_run:
            self.log.info(f"[DRY-RUN] Would download {url}")
            return target
        self._download(url, target)
        return target

    def _download(self, url: str, target: str):
        fd, tmpname = tempfile.mkstemp(prefix=".download-", dir=os.path.dirname(target))
        os.close(fd)
        try:
            with urllib.request.urlopen(url) as resp, open(tmpname, "wb") as out:
                shutil.copyfileobj(resp, out)
            os.replace(tmpname, target)
        except (urllib.error.URLError, OSError) as e:
            raise SyncError(f"Download failed for {url}: {e}")
        finally:
            if os.path.exists(tmpname):
                os.remove(tmpname)
