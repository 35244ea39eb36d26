import logging

from blackduck_fortify.exceptions import FortifyApiError
from blackduck_fortify.exceptions import PartialProvisioningError
from blackduck_fortify.fortify.api import FortifyClient
from blackduck_fortify.fortify.attribute_values import build_attribute_values
from blackduck_fortify.fortify.attribute_values import ConfiguredAttributeValues
from blackduck_fortify.fortify.attributes import fetch_attribute_definitions
from blackduck_fortify.models.fortify import CreateApplicationRequest
from blackduck_fortify.models.fortify import DEFAULT_POLICY
from blackduck_fortify.models.fortify import ProvisioningPolicy
from blackduck_fortify.models.fortify import ProvisioningResult
from blackduck_fortify.stats import get_stats_client
from blackduck_fortify.util import timeit

logger = logging.getLogger(__name__)
stat_handler = get_stats_client(__name__)

STEP_UPDATE_ATTRIBUTES = "update attributes"
STEP_COMMIT = "commit"


@timeit
def provision_application_version(
    client: FortifyClient,
    request: CreateApplicationRequest,
    attribute_values: ConfiguredAttributeValues,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> ProvisioningResult:
    """
    Create a Fortify application version, set its attributes and commit it.

    The attribute payload is built before anything is created, so a
    configuration problem never leaves a version behind in Fortify. Once the
    version exists, a failure is raised as PartialProvisioningError carrying
    the new id; nothing is rolled back here.

    Raises:
        AttributeCatalogError: the attribute definitions could not be read
        AttributeValueError: a configured attribute value is missing or invalid
        ApplicationCreateError: Fortify did not create the version
        PartialProvisioningError: the version was created but not fully set up
    """
    definitions = fetch_attribute_definitions(client)
    payload = build_attribute_values(definitions, attribute_values, policy)

    application_id = client.create_application_version(request)
    stat_handler.incr("application_versions_created")
    logger.info(
        "Created Fortify application version %s (%s) with id %d",
        request.name,
        "new application" if request.creates_application else f"application {request.project.id}",
        application_id,
    )

    step = STEP_UPDATE_ATTRIBUTES
    try:
        client.update_application_attributes(application_id, payload)
        logger.info("Updated attributes for new Fortify application version %d", application_id)
        step = STEP_COMMIT
        client.commit_application_version(application_id)
        logger.info("New Fortify application version %d is now committed", application_id)
    except FortifyApiError as e:
        stat_handler.incr("partial_provisioning")
        logger.error(
            "Fortify application version %d was created but the '%s' step failed: %s",
            application_id,
            step,
            e,
        )
        raise PartialProvisioningError(application_id, step, e) from e

    return ProvisioningResult(application_id=application_id)
