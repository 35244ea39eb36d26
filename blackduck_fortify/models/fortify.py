from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any


class AttributeType(str, Enum):
    SINGLE = "SINGLE"
    MULTIPLE = "MULTIPLE"
    TEXT = "TEXT"
    LONG_TEXT = "LONG_TEXT"
    SENSITIVE_TEXT = "SENSITIVE_TEXT"
    INTEGER = "INTEGER"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"


@dataclass(frozen=True)
class AttributeOption:
    guid: str
    name: str | None = None


@dataclass(frozen=True)
class AttributeDefinition:
    """A Fortify custom attribute definition, as returned by /api/v1/attributeDefinitions."""

    id: int
    name: str
    type: str
    category: str | None = None
    options: tuple[AttributeOption, ...] = ()

    @property
    def attribute_type(self) -> AttributeType | None:
        """The known attribute type, or None for types this client does not model."""
        try:
            return AttributeType(self.type.upper())
        except ValueError:
            return None

    @property
    def option_guids(self) -> set[str]:
        return {option.guid.lower() for option in self.options}


@dataclass(frozen=True)
class AttributeValuePayload:
    """
    One element of the body of PUT /api/v1/projectVersions/{id}/attributes.
    Option-typed attributes carry `values` (guids); every other type carries
    a scalar `value`.
    """

    attribute_definition_id: int
    values: tuple[str, ...] | None = None
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"attributeDefinitionId": self.attribute_definition_id}
        if self.values is not None:
            payload["values"] = [{"guid": guid} for guid in self.values]
        if self.value is not None:
            payload["value"] = self.value
        return payload


@dataclass(frozen=True)
class ParentProject:
    id: str
    name: str | None = None
    description: str | None = None
    issue_template_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id}
        if self.name is not None:
            payload["name"] = self.name
        if self.description is not None:
            payload["description"] = self.description
        if self.issue_template_id is not None:
            payload["issueTemplateId"] = self.issue_template_id
        return payload


@dataclass(frozen=True)
class CreateApplicationRequest:
    """Body of POST /api/v1/projectVersions."""

    name: str
    description: str
    active: bool
    committed: bool
    project: ParentProject
    issue_template_id: str

    @property
    def creates_application(self) -> bool:
        return self.project.id == ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "active": self.active,
            "committed": self.committed,
            "project": self.project.to_dict(),
            "issueTemplateId": self.issue_template_id,
        }


@dataclass(frozen=True)
class ProvisioningResult:
    application_id: int


# Default attribute values every new application version is created with.
DEFAULT_BASELINE_TEMPLATE: tuple[AttributeValuePayload, ...] = (
    AttributeValuePayload(5, values=("New",)),
    AttributeValuePayload(6, values=("Internal",)),
    AttributeValuePayload(7, values=("internalnetwork",)),
    AttributeValuePayload(10, values=()),
    AttributeValuePayload(11, values=()),
    AttributeValuePayload(12, values=()),
    AttributeValuePayload(1, values=("High",)),
    AttributeValuePayload(2, values=()),
    AttributeValuePayload(3, values=()),
    AttributeValuePayload(4, values=()),
)


@dataclass(frozen=True)
class ProvisioningPolicy:
    """
    Business rules applied when a Fortify application version has to be
    created. Override through the `[fortify.policy]` settings table.
    """

    issue_template_id: str = "Prioritized-HighRisk-Project-Template"
    description: str = "Built using API"
    # Inclusive id ranges pre-populated by the baseline template.
    reserved_id_ranges: tuple[tuple[int, int], ...] = ((1, 7), (10, 12))
    reserved_categories: tuple[str, ...] = ("DYNAMIC_SCAN_REQUEST",)
    baseline_template: tuple[AttributeValuePayload, ...] = field(
        default=DEFAULT_BASELINE_TEMPLATE,
    )


DEFAULT_POLICY = ProvisioningPolicy()
