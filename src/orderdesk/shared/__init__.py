from .config import Config, Secrets, load_config
from .logger import Logger

__all__ = ["Config", "Logger", "Secrets", "load_config"]
