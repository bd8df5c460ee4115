import configparser
import os

DEFAULT_LOCATIONS = [
    "/etc/component/component.conf",
    os.path.expanduser("~/.config/component/component.conf"),
]

DEFAULT_CACHE_DIR = os.path.expanduser("~/.config/component/components")


def _locations_from_env():
    override = os.environ.get("COMPONENT_CONFIG")
    if override:
        return [override] + DEFAULT_LOCATIONS
    return list(DEFAULT_LOCATIONS)


class ComponentConfig:
    def __init__(self, locations=None):
        self.locations = locations or _locations_from_env()
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def reload(self):
        """(Re)carrega a configuração do primeiro arquivo disponível.

        Sem arquivo nenhum, os valores padrão de cada chamada valem.
        """
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        for path in self.locations:
            if os.path.isfile(path):
                self.config.read(path)
                self.loaded_from = path
                return

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

    def getfloat(self, section, option, fallback=0.0):
        try:
            return self.config.getfloat(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getlist(self, section, option, fallback=None, delimiter=","):
        raw = self.get(section, option, fallback="")
        if raw:
            return [item.strip() for item in raw.split(delimiter) if item.strip()]
        return fallback or []

    def cache_dir(self):
        """Diretório raiz onde cada componente instalado tem sua subpasta."""
        path = self.get("catalog", "cache_dir", fallback=None) or DEFAULT_CACHE_DIR
        return os.path.abspath(os.path.expanduser(path))

# Instância global padrão para uso em outros módulos
config = ComponentConfig()
