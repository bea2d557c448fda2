"""glitchy: GitHub App that reviews pull requests with Claude."""

__version__ = "0.1.0"

from .config import AppCredentials, Settings, load_settings
from .errors import AuthError, ConfigError, GlitchyError, ReviewError, SigningError

__all__ = [
    "AppCredentials",
    "Settings",
    "load_settings",
    "GlitchyError",
    "ConfigError",
    "SigningError",
    "AuthError",
    "ReviewError",
    "__version__",
]
