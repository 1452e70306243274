import os

_ENV_MODULES = {
    "dev": "config.development",
    "development": "config.development",
    "test": "config.testing",
    "testing": "config.testing",
    "prod": "config.production",
    "production": "config.production",
}


def get_settings_module() -> str:
    """Dotted path of the settings module to load.

    CLASSSYNC_SETTINGS names a module outright (e.g. a site-specific one);
    otherwise APP_ENV picks one of the bundled modules, defaulting to development.
    """

    explicit = os.getenv("CLASSSYNC_SETTINGS", "").strip()
    if explicit:
        return explicit
    env = os.getenv("APP_ENV", "development").strip().lower()
    return _ENV_MODULES.get(env, "config.development")
