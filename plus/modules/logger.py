# plus/modules/logger.py
import os
import datetime
import threading
import json

from rich.console import Console

from plus.modules.config import config


class Logger:
    LEVELS = {
        "debug": 10,
        "info": 20,
        "success": 25,
        "warning": 30,
        "error": 40,
    }

    LEVEL_STYLES = {
        "DEBUG": "dim",
        "INFO": "blue",
        "SUCCESS": "green",
        "WARNING": "yellow",
        "ERROR": "bold red",
    }

    def __init__(self, name="plus", log_file=None):
        self.name = name
        log_dir = config.paths()["log_dir"]
        self.log_file = log_file or config.get("logging", "log_file", fallback=os.path.join(log_dir, "plus.log"))
        self.color_output = config.getboolean("logging", "color_output", fallback=True)
        self.log_to_file = config.getboolean("logging", "log_to_file", fallback=True)
        self.log_to_console = config.getboolean("logging", "log_to_console", fallback=True)
        self.use_utc = config.getboolean("logging", "timestamp_utc", fallback=False)
        self.log_format = config.get("logging", "log_format", fallback="text").lower()
        self.max_log_size_kb = config.getint("logging", "max_log_size_kb", fallback=0)

        level_str = config.get("logging", "level", fallback="info").lower()
        self.min_level = self.LEVELS.get(level_str, 20)

        # saída de log vai para stderr; stdout fica para tabelas/relatórios da CLI
        self.console = Console(stderr=True, highlight=False,
                               color_system="auto" if self.color_output else None)

        if self.log_to_file:
            self._ensure_dir(self.log_file)

        self._lock = threading.Lock()

    def _ensure_dir(self, filepath):
        dirpath = os.path.dirname(filepath)
        try:
            os.makedirs(dirpath, exist_ok=True)
        except OSError as e:
            self.log_to_file = False
            print(f"Logger: falha ao criar diretório de log {dirpath}: {e}")

    def _get_timestamp(self):
        now = datetime.datetime.now(datetime.timezone.utc) if self.use_utc else datetime.datetime.now()
        return now.strftime("%Y-%m-%d %H:%M:%S")

    def _rotate_if_needed(self, filepath):
        if self.max_log_size_kb <= 0:
            return
        if os.path.exists(filepath) and os.path.getsize(filepath) > self.max_log_size_kb * 1024:
            rotated = filepath + ".1"
            try:
                os.replace(filepath, rotated)
            except OSError as e:
                print(f"Logger: erro ao rotacionar log {filepath}: {e}")

    def _write_file(self, message):
        if not self.log_to_file:
            return
        self._rotate_if_needed(self.log_file)
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(message + "\n")
        except OSError as e:
            print(f"Logger: falha ao escrever no arquivo de log {self.log_file}: {e}")

    def _format_message(self, level, message):
        if self.log_format == "json":
            return json.dumps({
                "timestamp": self._get_timestamp(),
                "logger": self.name,
                "level": level,
                "message": message,
            })
        return f"[{self._get_timestamp()}] [{self.name}] [{level}] {message}"

    def _log_to_console(self, formatted, level):
        if not self.log_to_console:
            return
        style = self.LEVEL_STYLES.get(level) if self.log_format == "text" else None
        # markup=False: nomes de pacotes e comandos podem conter colchetes
        self.console.print(formatted, style=style, markup=False)

    def _should_log(self, level):
        return self.LEVELS.get(level.lower(), 0) >= self.min_level

    def log(self, level, message):
        level = level.upper()
        if not self._should_log(level):
            return

        formatted = self._format_message(level, message)
        with self._lock:
            self._log_to_console(formatted, level)
            self._write_file(formatted)

    def debug(self, message):
        self.log("DEBUG", message)

    def info(self, message):
        self.log("INFO", message)

    def success(self, message):
        self.log("SUCCESS", message)

    def warning(self, message):
        self.log("WARNING", message)

    def error(self, message):
        self.log("ERROR", message)
