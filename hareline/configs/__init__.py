from hareline.configs.config import Config
from hareline.configs.settings import Settings, get_settings

__all__ = ["Config", "Settings", "get_settings"]
