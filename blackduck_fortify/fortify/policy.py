import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from blackduck_fortify.models.fortify import AttributeValuePayload
from blackduck_fortify.models.fortify import DEFAULT_POLICY
from blackduck_fortify.models.fortify import ProvisioningPolicy

logger = logging.getLogger(__name__)


def parse_baseline_template(entries: list[Mapping[str, Any]]) -> tuple[AttributeValuePayload, ...]:
    """
    Parse baseline attribute values written in Fortify's wire format:
    `{"attributeDefinitionId": 5, "values": [{"guid": "New"}], "value": null}`.
    """
    template = []
    for entry in entries:
        try:
            definition_id = int(entry["attributeDefinitionId"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(
                f"Baseline template entry {dict(entry)!r} has no valid attributeDefinitionId.",
            ) from e
        values = entry.get("values")
        guids = None if values is None else tuple(v["guid"] for v in values)
        template.append(
            AttributeValuePayload(definition_id, values=guids, value=entry.get("value")),
        )
    return tuple(template)


def parse_reserved_id_ranges(ranges: list[Any]) -> tuple[tuple[int, int], ...]:
    parsed = []
    for id_range in ranges:
        if len(id_range) != 2 or int(id_range[0]) > int(id_range[1]):
            raise ValueError(
                f"Reserved id range {list(id_range)!r} must be an inclusive [low, high] pair.",
            )
        parsed.append((int(id_range[0]), int(id_range[1])))
    return tuple(parsed)


def load_policy(policy_settings: Mapping[str, Any] | None = None) -> ProvisioningPolicy:
    """
    Build the provisioning policy from the `[fortify.policy]` settings table.
    Keys that are not set keep the default policy value.
    """
    if not policy_settings:
        return DEFAULT_POLICY

    overrides: dict[str, Any] = {}
    if policy_settings.get("issue_template_id"):
        overrides["issue_template_id"] = str(policy_settings["issue_template_id"])
    if policy_settings.get("description"):
        overrides["description"] = str(policy_settings["description"])
    if policy_settings.get("reserved_id_ranges") is not None:
        overrides["reserved_id_ranges"] = parse_reserved_id_ranges(
            policy_settings["reserved_id_ranges"],
        )
    if policy_settings.get("reserved_categories") is not None:
        overrides["reserved_categories"] = tuple(
            str(c) for c in policy_settings["reserved_categories"]
        )
    if policy_settings.get("baseline_template") is not None:
        overrides["baseline_template"] = parse_baseline_template(
            policy_settings["baseline_template"],
        )

    if overrides:
        logger.info("Overriding Fortify provisioning policy: %s", ", ".join(sorted(overrides)))
    return replace(DEFAULT_POLICY, **overrides)
