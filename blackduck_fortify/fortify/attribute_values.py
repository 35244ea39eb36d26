"""
Builds the attribute payload sent to Fortify when a new application version
is created.

Fortify refuses to commit a version while a required custom attribute has no
value, so every attribute definition that is not covered by the baseline
template must have a value configured under its display name, e.g. in an
attribute settings file:

    [attributes]
    "Business Unit" = "Finance"
    "Interfaces" = "Web Service, Programmatic API"
    "Go-Live Date" = "2021-03-01"

Values are checked against the definition's type before anything is sent.
"""

import logging
import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any
from typing import Sequence

from dynaconf import Dynaconf

from blackduck_fortify.exceptions import AttributeTypeError
from blackduck_fortify.exceptions import InvalidOptionError
from blackduck_fortify.exceptions import MissingAttributeValueError
from blackduck_fortify.fortify.attributes import is_reserved_definition
from blackduck_fortify.models.fortify import AttributeDefinition
from blackduck_fortify.models.fortify import AttributeType
from blackduck_fortify.models.fortify import AttributeValuePayload
from blackduck_fortify.models.fortify import DEFAULT_POLICY
from blackduck_fortify.models.fortify import ProvisioningPolicy

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TEXT_TYPES = (AttributeType.TEXT, AttributeType.LONG_TEXT, AttributeType.SENSITIVE_TEXT)


class ConfiguredAttributeValues:
    """
    Attribute values keyed by Fortify attribute display name. `location`
    names where the values come from and is quoted in error messages so an
    operator knows what to fix.
    """

    def __init__(self, values: Mapping[str, Any], location: str) -> None:
        self._values = {str(k): str(v) for k, v in values.items() if v is not None}
        self._folded = {k.strip().lower(): v for k, v in self._values.items()}
        self.location = location

    def get(self, attribute_name: str) -> str | None:
        value = self._values.get(attribute_name)
        if value is None:
            value = self._folded.get(attribute_name.strip().lower())
        return value

    def __len__(self) -> int:
        return len(self._values)


def load_attribute_values(path: str, table: str = "attributes") -> ConfiguredAttributeValues:
    """
    Load attribute values from the `[attributes]` table of a settings file
    (any format dynaconf reads: toml, yaml, json, ini).
    """
    loaded = Dynaconf(settings_files=[path], merge_enabled=True)
    values = loaded.get(table, {}) or {}
    logger.info("Loaded %d Fortify attribute values from %s", len(values), path)
    return ConfiguredAttributeValues(values, path)


def _validate_option(definition: AttributeDefinition, value: str) -> None:
    if value.lower() not in definition.option_guids:
        raise InvalidOptionError(definition.name, value)


def build_attribute_value(definition: AttributeDefinition, raw_value: str) -> AttributeValuePayload:
    """
    Turn one configured value into the payload entry for `definition`.

    Raises:
        InvalidOptionError: a SINGLE/MULTIPLE value is not one of the definition's options
        AttributeTypeError: an INTEGER or DATE value does not parse
    """
    attribute_type = definition.attribute_type
    value = raw_value.strip()

    if attribute_type == AttributeType.SINGLE:
        _validate_option(definition, value)
        return AttributeValuePayload(definition.id, values=(value,))

    if attribute_type == AttributeType.MULTIPLE:
        tokens = tuple(token.strip() for token in value.split(","))
        for token in tokens:
            _validate_option(definition, token)
        return AttributeValuePayload(definition.id, values=tokens)

    if attribute_type in _TEXT_TYPES:
        return AttributeValuePayload(definition.id, value=value)

    if attribute_type == AttributeType.INTEGER:
        try:
            return AttributeValuePayload(definition.id, value=int(value))
        except ValueError as e:
            raise AttributeTypeError(definition.name, raw_value, definition.type) from e

    if attribute_type == AttributeType.BOOLEAN:
        # Anything other than "true" is false.
        return AttributeValuePayload(definition.id, value=value.lower() == "true")

    if attribute_type == AttributeType.DATE:
        try:
            if not _DATE_PATTERN.match(value):
                raise ValueError(f"{value!r} does not match yyyy-MM-dd")
            datetime.strptime(value, DATE_FORMAT)
        except ValueError as e:
            raise AttributeTypeError(
                definition.name,
                raw_value,
                "date",
                hint="Please make sure the date format is yyyy-MM-dd",
            ) from e
        return AttributeValuePayload(definition.id, value=value)

    logger.debug(
        "Unknown attribute type %s for %s, sending the value as text",
        definition.type,
        definition.name,
    )
    return AttributeValuePayload(definition.id, value=value)


def build_attribute_values(
    definitions: Sequence[AttributeDefinition],
    configured_values: ConfiguredAttributeValues,
    policy: ProvisioningPolicy = DEFAULT_POLICY,
) -> list[AttributeValuePayload]:
    """
    Build the full attribute payload for a new application version: the
    policy's baseline template first, then one entry per non-reserved
    definition in catalog order.

    Raises:
        MissingAttributeValueError: a non-reserved definition has no configured value
        InvalidOptionError, AttributeTypeError: see build_attribute_value()
    """
    payload = list(policy.baseline_template)
    for definition in definitions:
        if is_reserved_definition(definition, policy):
            continue
        raw_value = configured_values.get(definition.name)
        if not raw_value:
            raise MissingAttributeValueError(definition.name, configured_values.location)
        payload.append(build_attribute_value(definition, raw_value))
    logger.debug("Built %d attribute values", len(payload))
    return payload
