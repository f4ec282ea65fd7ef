from albumlog.config.loader import load_config
from albumlog.config.settings import Settings

__all__ = ["Settings", "load_config"]
