# Settings package
from mentorship.settings.modules import AppSettings, get_app_settings

__all__ = ["get_app_settings", "AppSettings"]
