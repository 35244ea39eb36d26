import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from blackduck_fortify.exceptions import ApplicationLookupError
from blackduck_fortify.exceptions import BlackDuckFortifyError
from blackduck_fortify.fortify.api import FortifyClient
from blackduck_fortify.fortify.attribute_values import ConfiguredAttributeValues
from blackduck_fortify.fortify.provisioning import provision_application_version
from blackduck_fortify.models.fortify import CreateApplicationRequest
from blackduck_fortify.models.fortify import DEFAULT_POLICY
from blackduck_fortify.models.fortify import ParentProject
from blackduck_fortify.models.fortify import ProvisioningPolicy
from blackduck_fortify.models.mapping import MappingGroup
from blackduck_fortify.models.mapping import ResolutionState
from blackduck_fortify.stats import get_stats_client
from blackduck_fortify.util import timeit

logger = logging.getLogger(__name__)
stat_handler = get_stats_client(__name__)

VERSION_FIELDS = "id"
APPLICATION_FIELDS = "id,project"
Q_PROJECT = "project.name:"
Q_VERSION = "name:"
Q_CONNECTOR = "+and+"


@dataclass(frozen=True)
class ApplicationVersionLookup:
    id: int
    parent_application_id: int | None = None


def _quote_term(value: str) -> str:
    # Fortify decodes the query string, so a literal "+" in a name would read
    # as a space. Only the connector may stay unescaped.
    return quote(value, safe="")


def build_version_query(application_name: str, application_version: str) -> str:
    return (
        f"{Q_VERSION}{_quote_term(application_version)}"
        f"{Q_CONNECTOR}{Q_PROJECT}{_quote_term(application_name)}"
    )


def build_application_query(application_name: str) -> str:
    return f"{Q_PROJECT}{_quote_term(application_name)}"


def _first_id(operation: str, record: dict[str, Any]) -> int:
    try:
        return int(record["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise ApplicationLookupError(operation, f"record without a numeric id: {record!r}") from e


@timeit
def find_application_version(
    client: FortifyClient,
    application_name: str,
    application_version: str,
) -> ApplicationVersionLookup | None:
    """
    Look up the Fortify version exactly matching the application name and version.
    :return: the match, or None when Fortify has no such version
    """
    q = build_version_query(application_name, application_version)
    logger.info("Querying fortify %s", q)
    data = client.get_application_versions(VERSION_FIELDS, q)
    if not data:
        return None
    return ApplicationVersionLookup(id=_first_id("Fortify Get Application Version Api", data[0]))


@timeit
def find_application(client: FortifyClient, application_name: str) -> ApplicationVersionLookup | None:
    """
    Look up any version of the named Fortify application, to learn the
    application (parent project) id.
    :return: a version of the application with its parent id, or None
    """
    q = build_application_query(application_name)
    logger.info("Querying fortify %s", q)
    data = client.get_application_versions(APPLICATION_FIELDS, q)
    if not data:
        return None
    record = data[0]
    operation = "Fortify Get Application Version Api"
    try:
        parent_id = int(record["project"]["id"])
    except (KeyError, TypeError, ValueError) as e:
        raise ApplicationLookupError(operation, f"version without a project id: {record!r}") from e
    return ApplicationVersionLookup(id=_first_id(operation, record), parent_application_id=parent_id)


def build_version_request(
    parent_application_id: int,
    application_version: str,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> CreateApplicationRequest:
    """Request for a new version under an existing Fortify application."""
    return CreateApplicationRequest(
        name=application_version,
        description=policy.description,
        active=True,
        committed=False,
        project=ParentProject(id=str(parent_application_id)),
        issue_template_id=policy.issue_template_id,
    )


def build_application_version_request(
    application_name: str,
    application_version: str,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> CreateApplicationRequest:
    """Request for a new Fortify application together with its first version."""
    return CreateApplicationRequest(
        name=application_version,
        description=policy.description,
        active=True,
        committed=False,
        project=ParentProject(
            id="",
            name=application_name,
            description=policy.description,
            issue_template_id=policy.issue_template_id,
        ),
        issue_template_id=policy.issue_template_id,
    )


def resolve_application_id(
    client: FortifyClient,
    application_name: str,
    application_version: str,
    attribute_values: ConfiguredAttributeValues,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> int:
    """
    Find the Fortify application version id, creating the version (and the
    application when needed) if it does not exist yet.
    """
    existing = find_application_version(client, application_name, application_version)
    if existing is not None:
        logger.info("Fortify Application Found: %d", existing.id)
        return existing.id

    logger.info(
        "Unable to find %s %s on fortify, creating a new application version",
        application_name,
        application_version,
    )
    application = find_application(client, application_name)
    if application is not None:
        request = build_version_request(
            application.parent_application_id,
            application_version,
            policy,
        )
    else:
        request = build_application_version_request(
            application_name,
            application_version,
            policy,
        )
    return provision_application_version(client, request, attribute_values, policy).application_id


def resolve_group(
    client: FortifyClient,
    group: MappingGroup,
    attribute_values: ConfiguredAttributeValues,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> MappingGroup:
    """
    Move an unresolved group to RESOLVED or FAILED. Errors are kept on the
    failed group rather than raised, so one bad mapping does not stop the
    others. Groups that are already resolved are returned as they are.
    """
    if group.state == ResolutionState.RESOLVED:
        return group
    try:
        application_id = resolve_application_id(
            client,
            group.target_application_name,
            group.target_application_version,
            attribute_values,
            policy,
        )
    except BlackDuckFortifyError as e:
        stat_handler.incr("groups_failed")
        logger.error("Unable to resolve Fortify application version %s: %s", group.key, e)
        return group.failed(e)
    stat_handler.incr("groups_resolved")
    return group.resolved(application_id)
