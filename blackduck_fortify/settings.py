import argparse
import logging
from typing import List

from dynaconf import Dynaconf

logger = logging.getLogger(__name__)


settings = Dynaconf(
    includes=["settings.toml"],
    load_dotenv=True,
    merge_enabled=True,
    envvar_prefix="BLACKDUCK_FORTIFY",
)


def check_module_settings(module_name: str, required_settings: List[str]) -> bool:
    """
    Check if the required settings for a module are set in the configuration.

    Args:
        module_name (str): The name of the module.
        required_settings (List[str]): A list of required settings for the module.

    Returns:
        bool: True if all required settings are present, False otherwise.
    """
    module_settings = settings.get(module_name.upper(), None)
    if module_settings is None:
        logger.info(
            "%s is not configured - skipping. See docs to configure.",
            module_name,
        )
        return False

    missing_settings = [
        setting for setting in required_settings if not module_settings.get(setting)
    ]
    if len(missing_settings) > 0:
        logger.warning(
            "%s is not configured - skipping. Missing settings: %s",
            module_name,
            ", ".join(missing_settings),
        )
        return False
    return True


def populate_settings_from_config(config: argparse.Namespace) -> None:
    """
    Copy the values given on the command line over the settings loaded from
    settings.toml and the environment.
    """
    if getattr(config, "mapping_file", None):
        settings.update({"fortify": {"mapping_file_path": config.mapping_file}})
    if getattr(config, "attribute_file", None):
        settings.update({"fortify": {"attribute_file_path": config.attribute_file}})
    if getattr(config, "max_workers", None):
        settings.update({"fortify": {"max_workers": config.max_workers}})
    if getattr(config, "delete_partial", False):
        settings.update({"fortify": {"delete_partial": True}})
    if getattr(config, "output", None):
        settings.update({"fortify": {"output_file_path": config.output}})
    if getattr(config, "statsd_enabled", False):
        settings.update({"statsd": {"enabled": True}})
