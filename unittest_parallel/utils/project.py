from __future__ import annotations

import os

from unittest_parallel.settings import Settings

ENVVAR = "UNITTEST_PARALLEL_SETTINGS_MODULE"


def get_project_settings() -> Settings:
    """Return the default settings overlaid with the module named by the
    ``UNITTEST_PARALLEL_SETTINGS_MODULE`` environment variable, if any.

    An import error in that module propagates: a run never starts with a
    configuration it could not read.
    """
    settings = Settings()
    settings_module_path = os.environ.get(ENVVAR)
    if settings_module_path:
        settings.setmodule(settings_module_path, priority="project")
    return settings
