class ConfigError(Exception):
    """Base class for ConfigManager failures."""


class ConfigWriteError(ConfigError):
    """`ConfigManager.set()` refused a key or value."""


class ConfigInitializationError(ConfigError):
    """A YAML file could not be loaded while `strict=True`."""


__all__ = ["ConfigError", "ConfigWriteError", "ConfigInitializationError"]
