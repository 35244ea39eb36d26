import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from blackduck_fortify.fortify.api import FortifyClient
from blackduck_fortify.fortify.application import resolve_group
from blackduck_fortify.fortify.attribute_values import ConfiguredAttributeValues
from blackduck_fortify.mapping.parser import group_mappings
from blackduck_fortify.mapping.parser import load_mapping_entries
from blackduck_fortify.mapping.parser import MappingSource
from blackduck_fortify.models.fortify import DEFAULT_POLICY
from blackduck_fortify.models.fortify import ProvisioningPolicy
from blackduck_fortify.models.mapping import MappingGroup
from blackduck_fortify.models.mapping import ResolutionState
from blackduck_fortify.util import timeit

logger = logging.getLogger(__name__)


def _target(group: MappingGroup) -> tuple[str, str]:
    return (group.target_application_name, group.target_application_version)


def resolve_groups(
    client: FortifyClient,
    groups: Sequence[MappingGroup],
    attribute_values: ConfiguredAttributeValues,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
    max_workers: int = 1,
) -> list[MappingGroup]:
    """
    Resolve every group to its Fortify application version id.

    With max_workers > 1 distinct groups are resolved concurrently. Each
    result is stored once under its group key and the returned list keeps the
    input order either way.
    """
    if max_workers <= 1 or len(groups) <= 1:
        return [resolve_group(client, group, attribute_values, policy) for group in groups]

    results: dict[tuple[str, str], MappingGroup] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            _target(group): executor.submit(resolve_group, client, group, attribute_values, policy)
            for group in groups
        }
        for target, future in futures.items():
            results[target] = future.result()
    return [results[_target(group)] for group in groups]


@timeit
def resolve_mappings(
    mapping_source: MappingSource,
    client: FortifyClient,
    attribute_values: ConfiguredAttributeValues,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
    max_workers: int = 1,
) -> list[MappingGroup]:
    """
    Load the mapping, group it by Fortify application version and resolve
    each group, creating missing Fortify applications and versions.

    :param mapping_source: path to the mapping JSON file, or decoded mapping data
    :return: one group per Fortify application version, in first-seen order,
        each either RESOLVED with an id or FAILED with the error
    :raises MappingLoadError: the mapping could not be loaded; nothing is resolved
    """
    entries = load_mapping_entries(mapping_source)
    groups = group_mappings(entries)
    resolved = resolve_groups(client, groups, attribute_values, policy, max_workers)

    failed = [group for group in resolved if group.state == ResolutionState.FAILED]
    logger.info(
        "Resolved %d of %d Fortify application versions",
        len(resolved) - len(failed),
        len(resolved),
    )
    return resolved
