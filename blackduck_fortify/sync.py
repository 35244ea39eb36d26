import json
import logging
from typing import Sequence

from statsd import StatsClient

from blackduck_fortify.exceptions import FortifyApiError
from blackduck_fortify.exceptions import MappingLoadError
from blackduck_fortify.exceptions import PartialProvisioningError
from blackduck_fortify.fortify.api import FortifyClient
from blackduck_fortify.fortify.attribute_values import ConfiguredAttributeValues
from blackduck_fortify.fortify.attribute_values import load_attribute_values
from blackduck_fortify.fortify.policy import load_policy
from blackduck_fortify.mapping import resolve_mappings
from blackduck_fortify.models.mapping import MappingGroup
from blackduck_fortify.models.mapping import ResolutionState
from blackduck_fortify.settings import check_module_settings
from blackduck_fortify.settings import settings
from blackduck_fortify.stats import get_stats_client
from blackduck_fortify.stats import set_stats_client
from blackduck_fortify.util import STATUS_FAILURE
from blackduck_fortify.util import STATUS_SUCCESS

logger = logging.getLogger(__name__)
stat_handler = get_stats_client(__name__)

REQUIRED_FORTIFY_SETTINGS = ["server_url", "username", "password", "mapping_file_path"]


def build_fortify_client() -> FortifyClient:
    http_timeout = settings.get("common", {}).get("http_timeout", 60)
    return FortifyClient(
        settings.fortify.server_url,
        settings.fortify.username,
        settings.fortify.password,
        timeout=(http_timeout, http_timeout),
    )


def build_attribute_value_source() -> ConfiguredAttributeValues:
    """
    Attribute values come from a dedicated attribute file when one is
    configured, otherwise from the `[fortify.attributes]` settings table.
    """
    attribute_file_path = settings.fortify.get("attribute_file_path")
    if attribute_file_path:
        return load_attribute_values(attribute_file_path)
    return ConfiguredAttributeValues(
        settings.fortify.get("attributes", {}) or {},
        "settings.toml [fortify.attributes]",
    )


def cleanup_partial_provisioning(client: FortifyClient, groups: Sequence[MappingGroup]) -> list[int]:
    """
    Delete the application versions that were created but never committed,
    so the next run can create them again from scratch.
    :return: the deleted application version ids
    """
    deleted: list[int] = []
    for group in groups:
        if not isinstance(group.error, PartialProvisioningError):
            continue
        application_id = group.error.application_id
        try:
            client.delete_application_version(application_id)
        except FortifyApiError as e:
            logger.error(
                "Unable to delete uncommitted Fortify application version %d (%s): %s",
                application_id,
                group.key,
                e,
            )
            continue
        logger.info("Deleted uncommitted Fortify application version %d (%s)", application_id, group.key)
        deleted.append(application_id)
    return deleted


def write_output(groups: Sequence[MappingGroup], output_file_path: str) -> None:
    with open(output_file_path, "w", encoding="utf-8") as f:
        json.dump([group.to_dict() for group in groups], f, indent=2)
    logger.info("Wrote %d mapping groups to %s", len(groups), output_file_path)


def run() -> int:
    """
    Resolve the configured mapping against Fortify.

    :return: STATUS_SUCCESS when every mapping group resolved, STATUS_FAILURE otherwise
    """
    # StatsD
    if settings.get("statsd", {}).get("enabled", False):
        statsd_host = settings.get("statsd", {}).get("host", "127.0.0.1")
        statsd_port = settings.get("statsd", {}).get("port", 8125)
        statsd_prefix = settings.get("statsd", {}).get("prefix", "")
        logger.debug(
            'statsd enabled. Sending metrics to server %s:%s. Metrics have prefix "%s".',
            statsd_host,
            statsd_port,
            statsd_prefix,
        )
        set_stats_client(
            StatsClient(
                host=statsd_host,
                port=statsd_port,
                prefix=statsd_prefix,
            ),
        )

    if not check_module_settings("Fortify", REQUIRED_FORTIFY_SETTINGS):
        return STATUS_FAILURE

    client = build_fortify_client()
    attribute_values = build_attribute_value_source()
    policy = load_policy(settings.fortify.get("policy"))
    max_workers = int(settings.fortify.get("max_workers", 1))

    logger.info("Starting Fortify mapping resolution from '%s'", settings.fortify.mapping_file_path)
    try:
        groups = resolve_mappings(
            settings.fortify.mapping_file_path,
            client,
            attribute_values,
            policy,
            max_workers=max_workers,
        )
    except MappingLoadError as e:
        logger.error("Unable to load the mapping: %s", e)
        return STATUS_FAILURE

    failed = [group for group in groups if group.state == ResolutionState.FAILED]
    stat_handler.gauge("groups_failed", len(failed))
    for group in failed:
        logger.warning("Mapping group %s failed: %s", group.key, group.error)

    if settings.fortify.get("delete_partial", False):
        cleanup_partial_provisioning(client, failed)

    output_file_path = settings.fortify.get("output_file_path")
    if output_file_path:
        write_output(groups, output_file_path)

    logger.info(
        "Finished Fortify mapping resolution: %d resolved, %d failed",
        len(groups) - len(failed),
        len(failed),
    )
    return STATUS_FAILURE if failed else STATUS_SUCCESS
