# plus/modules/utils.py

import os
import tempfile


class PlusError(Exception):
    """Base de todos os erros reportados pelo plus."""


class Utils:
    """
    Funções utilitárias gerais usadas por outros módulos.
    """

    @staticmethod
    def ensure_dir(path):
        """
        Cria diretório se não existir.
        """
        os.makedirs(path, exist_ok=True)
        return path

    @staticmethod
    def read_list_file(path):
        """
        Lê um arquivo de lista (um nome por linha).
        Linhas vazias e comentários '#' são ignorados; arquivo ausente -> lista vazia.
        Mantém a ordem da primeira ocorrência e descarta duplicatas.
        """
        if not os.path.isfile(path):
            return []
        items = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                entry = line.strip()
                if not entry or entry.startswith("#"):
                    continue
                if entry not in items:
                    items.append(entry)
        return items

    @staticmethod
    def atomic_write(path, content):
        """
        Escreve em arquivo temporário no mesmo diretório e troca com os.replace,
        de modo que o destino nunca fica parcialmente escrito.
        """
        dirpath = os.path.dirname(os.path.abspath(path))
        os.makedirs(dirpath, exist_ok=True)
        fd, tmpname = tempfile.mkstemp(prefix=".tmp-", dir=dirpath)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmpname, path)
        except BaseException:
            if os.path.exists(tmpname):
                os.remove(tmpname)
            raise

    @staticmethod
    def list_subdirs(path):
        """
        Retorna lista de subdiretórios de um diretório.
        """
        if not os.path.exists(path):
            return []
        return sorted(d for d in os.listdir(path) if os.path.isdir(os.path.join(path, d)))
