"""Settings models and loader."""

from vps_orchestrator.settings.config_loader import load_app_settings
from vps_orchestrator.settings.config_models import SYMBOLS_DEFAULT, AppSettings

__all__ = ["AppSettings", "SYMBOLS_DEFAULT", "load_app_settings"]
