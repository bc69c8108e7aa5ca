# plus/modules/config.py
import configparser
import os

DEFAULT_ROOT = "/opt/plus"

DEFAULT_LOCATIONS = [
    "/etc/plus/plus.conf",
    os.path.expanduser("~/.config/plus/plus.conf"),
]

# valores padrão de cada seção
DEFAULTS = {
    "build": {
        "cflags": "-O2 -pipe",
        "ldflags": "",
        "destdir": "/",
        "use_fakeroot": "yes",
        "jobs": "1",
    },
    "deps": {
        "skip_recommended": "no",
    },
    "sync": {
        "default_branch": "main",
    },
    "logging": {
        "level": "info",
        "log_to_file": "yes",
        "log_to_console": "yes",
        "color_output": "yes",
        "log_format": "text",
        "max_log_size_kb": "0",
    },
}


class PlusConfig:
    def __init__(self, locations=None):
        self.locations = locations
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def _candidates(self):
        if self.locations:
            return list(self.locations)
        found = []
        env_conf = os.environ.get("PLUS_CONF")
        if env_conf:
            found.append(env_conf)
        found.extend(DEFAULT_LOCATIONS)
        found.append(os.path.join(self._env_root(), "plus.conf"))
        return found

    @staticmethod
    def _env_root():
        return os.environ.get("PLUS_ROOT") or DEFAULT_ROOT

    def reload(self, path=None):
        """(Re)carrega a configuração do primeiro arquivo disponível.

        Sem arquivo nenhum, valem os defaults.
        """
        self.config = configparser.ConfigParser()
        self.config.read_dict(DEFAULTS)
        self.loaded_from = None
        candidates = [path] if path else self._candidates()
        for candidate in candidates:
            if candidate and os.path.isfile(candidate):
                self.config.read(candidate)
                self.loaded_from = candidate
                break
        if not self.config.has_option("paths", "root"):
            self.set("paths", "root", self._env_root())
        return self.loaded_from

    def get(self, section, option, fallback=None):
        try:
            return self.config.get(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getboolean(self, section, option, fallback=False):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getint(self, section, option, fallback=0):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def set(self, section, option, value):
        """Sobrescreve um valor em tempo de execução (flags da CLI, testes)."""
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, option, str(value))

    def paths(self):
        """
        Layout de diretórios derivado de [paths] root:
          workdir/src      -> declarações (.dep/.optdep/.recom, recipe.yaml)
          workdir/build    -> árvores extraídas
          workdir/patches  -> patches por pacote
          workdir/sha256   -> checksums
          sync_dir         -> fontes baixadas
          var/db/installed.packages -> registro de pacotes
        """
        root = os.path.abspath(self.get("paths", "root", fallback=DEFAULT_ROOT))
        workdir = self.get("paths", "workdir") or os.path.join(root, "workdir")
        return {
            "root": root,
            "workdir": workdir,
            "src_dir": os.path.join(workdir, "src"),
            "build_dir": os.path.join(workdir, "build"),
            "patches_dir": os.path.join(workdir, "patches"),
            "sha256_dir": os.path.join(workdir, "sha256"),
            "sync_dir": self.get("paths", "sync_dir") or os.path.join(root, "sync"),
            "log_dir": self.get("paths", "log_dir") or os.path.join(root, "logs"),
            "db_file": self.get("paths", "db_file") or os.path.join(root, "var", "db", "installed.packages"),
            "hooks_dir": self.get("paths", "hooks_dir") or os.path.join(root, "hooks"),
            "packages_list": os.path.join(root, "packages.list"),
        }


# Instância global padrão para uso em outros módulos
config = PlusConfig()
