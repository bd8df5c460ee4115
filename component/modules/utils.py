# component/modules/utils.py

import os


class Utils:
    """
    Funções utilitárias de sistema de arquivos usadas por outros módulos.
    """

    @staticmethod
    def ensure_dir(path):
        """
        Cria diretório se não existir.
        """
        os.makedirs(path, exist_ok=True)
        return path

    @staticmethod
    def list_subdirs(path):
        """
        Retorna lista (ordenada) de subdiretórios de um diretório.
        """
        if not os.path.isdir(path):
            return []
        return sorted(d for d in os.listdir(path) if os.path.isdir(os.path.join(path, d)))

    @staticmethod
    def file_exists(path):
        """
        True se o caminho existe e não é um diretório.
        """
        return os.path.exists(path) and not os.path.isdir(path)

    @staticmethod
    def read_bytes(path):
        with open(path, "rb") as f:
            return f.read()

    @staticmethod
    def read_file(path):
        """
        Lê arquivo texto e retorna conteúdo.
        """
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    @staticmethod
    def write_file(path, content):
        """
        Escreve conteúdo em arquivo (texto ou bytes).
        """
        mode = "wb" if isinstance(content, bytes) else "w"
        if mode == "wb":
            with open(path, mode) as f:
                f.write(content)
        else:
            with open(path, mode, encoding="utf-8") as f:
                f.write(content)
