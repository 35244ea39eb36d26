import logging
from typing import Any

from blackduck_fortify.exceptions import AttributeCatalogError
from blackduck_fortify.fortify.api import FortifyClient
from blackduck_fortify.models.fortify import AttributeDefinition
from blackduck_fortify.models.fortify import AttributeOption
from blackduck_fortify.models.fortify import DEFAULT_POLICY
from blackduck_fortify.models.fortify import ProvisioningPolicy
from blackduck_fortify.util import timeit

logger = logging.getLogger(__name__)

ATTRIBUTE_DEFINITION_FIELDS = "id,name,type,category,options"


@timeit
def get_attribute_definitions(client: FortifyClient) -> list[dict[str, Any]]:
    return client.get_attribute_definitions(fields=ATTRIBUTE_DEFINITION_FIELDS)


def _require_str(raw: dict[str, Any], key: str) -> str:
    value = raw[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' must be a non-empty string, got {value!r}")
    return value


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, got {value!r}")
    return value


def _transform_option(option: dict[str, Any]) -> AttributeOption:
    guid = option["guid"]
    if not isinstance(guid, str):
        raise ValueError(f"option 'guid' must be a string, got {guid!r}")
    return AttributeOption(guid=guid, name=option.get("name"))


def transform_attribute_definitions(
    raw_definitions: list[dict[str, Any]],
) -> list[AttributeDefinition]:
    """
    Transform raw attribute definition records into AttributeDefinition objects,
    keeping the order Fortify returned them in.

    Raises:
        AttributeCatalogError: when a record lacks an id, has a blank or
            non-string name or type, or has an option without a string guid
    """
    definitions: list[AttributeDefinition] = []
    for raw in raw_definitions:
        try:
            options = tuple(_transform_option(option) for option in raw.get("options") or [])
            definitions.append(
                AttributeDefinition(
                    id=int(raw["id"]),
                    name=_require_str(raw, "name"),
                    type=_require_str(raw, "type"),
                    category=_optional_str(raw, "category"),
                    options=options,
                ),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise AttributeCatalogError(
                "Fortify Get Attribute Definitions Api",
                f"malformed attribute definition {raw!r}: {e!r}",
            ) from e
    return definitions


def fetch_attribute_definitions(client: FortifyClient) -> list[AttributeDefinition]:
    definitions = transform_attribute_definitions(get_attribute_definitions(client))
    logger.info("Retrieved %d Fortify attribute definitions", len(definitions))
    return definitions


def is_reserved_definition(
    definition: AttributeDefinition,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> bool:
    """
    Reserved definitions are either filled in by the baseline template or not
    required when a version is created, so no configured value is needed.
    """
    for low, high in policy.reserved_id_ranges:
        if low <= definition.id <= high:
            return True
    if definition.category is None:
        return False
    return definition.category.upper() in {c.upper() for c in policy.reserved_categories}
