from hive.database.config.config import LOGGING, Settings, get_settings, settings

__all__ = ["LOGGING", "Settings", "get_settings", "settings"]
