import pytest

from blackduck_fortify.exceptions import AttributeTypeError
from blackduck_fortify.exceptions import InvalidOptionError
from blackduck_fortify.exceptions import MissingAttributeValueError
from blackduck_fortify.fortify.attribute_values import build_attribute_value
from blackduck_fortify.fortify.attribute_values import build_attribute_values
from blackduck_fortify.fortify.attribute_values import ConfiguredAttributeValues
from blackduck_fortify.fortify.attribute_values import load_attribute_values
from blackduck_fortify.fortify.attributes import transform_attribute_definitions
from blackduck_fortify.models.fortify import AttributeDefinition
from blackduck_fortify.models.fortify import AttributeOption
from blackduck_fortify.models.fortify import AttributeValuePayload
from blackduck_fortify.models.fortify import DEFAULT_BASELINE_TEMPLATE
from blackduck_fortify.models.fortify import ProvisioningPolicy
from tests.data.fortify.attribute_definitions import ATTRIBUTE_DEFINITIONS
from tests.data.fortify.attribute_definitions import ATTRIBUTE_VALUES
from tests.data.fortify.attribute_definitions import ATTRIBUTE_VALUES_LOCATION
from tests.data.fortify.attribute_definitions import RESERVED_ATTRIBUTE_DEFINITIONS

BUSINESS_UNIT = AttributeDefinition(
    id=8,
    name="Business Unit",
    type="SINGLE",
    options=(AttributeOption("Finance"), AttributeOption("Retail")),
)
INTERFACES = AttributeDefinition(
    id=9,
    name="Interfaces",
    type="MULTIPLE",
    options=(
        AttributeOption("WebService"),
        AttributeOption("ProgrammaticAPI"),
        AttributeOption("CommandLine"),
    ),
)
GO_LIVE = AttributeDefinition(id=16, name="Go-Live Date", type="DATE")


def _values(values):
    return ConfiguredAttributeValues(values, ATTRIBUTE_VALUES_LOCATION)


class TestBuildAttributeValues:
    def test_baseline_first_then_catalog_order(self):
        definitions = transform_attribute_definitions(ATTRIBUTE_DEFINITIONS)

        payload = build_attribute_values(definitions, _values(ATTRIBUTE_VALUES))

        baseline_size = len(DEFAULT_BASELINE_TEMPLATE)
        assert payload[:baseline_size] == list(DEFAULT_BASELINE_TEMPLATE)
        assert [p.attribute_definition_id for p in payload[baseline_size:]] == [8, 9, 13, 14, 15, 16]
        assert payload[baseline_size:] == [
            AttributeValuePayload(8, values=("finance",)),
            AttributeValuePayload(9, values=("WebService", "CommandLine")),
            AttributeValuePayload(13, value="appsec@example.com"),
            AttributeValuePayload(14, value=250),
            AttributeValuePayload(15, value=True),
            AttributeValuePayload(16, value="2021-03-01"),
        ]

    def test_reserved_definitions_need_no_value(self):
        definitions = transform_attribute_definitions(RESERVED_ATTRIBUTE_DEFINITIONS)

        payload = build_attribute_values(definitions, _values({}))

        assert payload == list(DEFAULT_BASELINE_TEMPLATE)

    def test_missing_value_names_attribute_and_location(self):
        with pytest.raises(MissingAttributeValueError) as excinfo:
            build_attribute_values([BUSINESS_UNIT], _values({"Interfaces": "WebService"}))

        assert excinfo.value.attribute == "Business Unit"
        assert "Business Unit" in str(excinfo.value)
        assert ATTRIBUTE_VALUES_LOCATION in str(excinfo.value)

    def test_empty_value_is_missing(self):
        with pytest.raises(MissingAttributeValueError):
            build_attribute_values([BUSINESS_UNIT], _values({"Business Unit": ""}))

    def test_custom_policy_baseline_and_ranges(self):
        policy = ProvisioningPolicy(
            reserved_id_ranges=((8, 8),),
            reserved_categories=(),
            baseline_template=(AttributeValuePayload(8, values=("Retail",)),),
        )

        payload = build_attribute_values(
            [BUSINESS_UNIT, GO_LIVE],
            _values({"Go-Live Date": "2022-01-31"}),
            policy,
        )

        assert payload == [
            AttributeValuePayload(8, values=("Retail",)),
            AttributeValuePayload(16, value="2022-01-31"),
        ]


class TestBuildAttributeValue:
    def test_single_matches_option_case_insensitively(self):
        assert build_attribute_value(BUSINESS_UNIT, "RETAIL") == AttributeValuePayload(8, values=("RETAIL",))

    def test_single_invalid_option(self):
        with pytest.raises(InvalidOptionError) as excinfo:
            build_attribute_value(BUSINESS_UNIT, "Marketing")

        assert excinfo.value.attribute == "Business Unit"
        assert '"Marketing" is not a valid option' in str(excinfo.value)

    def test_multiple_yields_one_guid_per_token(self):
        payload = build_attribute_value(INTERFACES, " WebService ,ProgrammaticAPI, CommandLine")

        assert payload.values == ("WebService", "ProgrammaticAPI", "CommandLine")
        assert payload.value is None

    def test_multiple_validates_every_token(self):
        with pytest.raises(InvalidOptionError, match='"Carrier Pigeon"'):
            build_attribute_value(INTERFACES, "WebService, Carrier Pigeon")

    def test_multiple_invalid_first_token(self):
        with pytest.raises(InvalidOptionError):
            build_attribute_value(INTERFACES, "Fax, WebService")

    @pytest.mark.parametrize("attribute_type", ["TEXT", "LONG_TEXT", "SENSITIVE_TEXT"])
    def test_text_types_are_trimmed(self, attribute_type):
        definition = AttributeDefinition(id=13, name="Notes", type=attribute_type)

        assert build_attribute_value(definition, "  hello world ").value == "hello world"

    def test_integer(self):
        definition = AttributeDefinition(id=14, name="Number of Users", type="INTEGER")

        assert build_attribute_value(definition, "42").value == 42

    def test_integer_not_numeric(self):
        definition = AttributeDefinition(id=14, name="Number of Users", type="INTEGER")

        with pytest.raises(AttributeTypeError) as excinfo:
            build_attribute_value(definition, "lots")

        assert excinfo.value.attribute == "Number of Users"
        assert excinfo.value.value == "lots"
        assert "is not a valid INTEGER" in str(excinfo.value)

    @pytest.mark.parametrize(
        "raw_value, expected",
        [("true", True), ("TRUE", True), ("False", False), ("yes", False), ("1", False)],
    )
    def test_boolean_only_true_is_true(self, raw_value, expected):
        definition = AttributeDefinition(id=15, name="Internet Facing", type="BOOLEAN")

        assert build_attribute_value(definition, raw_value).value is expected

    def test_date_keeps_original_string(self):
        assert build_attribute_value(GO_LIVE, "2020-02-29").value == "2020-02-29"

    @pytest.mark.parametrize("raw_value", ["13/40/2020", "2020-13-40", "2021-02-29", "2020-1-5", "soon"])
    def test_invalid_date(self, raw_value):
        with pytest.raises(AttributeTypeError) as excinfo:
            build_attribute_value(GO_LIVE, raw_value)

        assert excinfo.value.attribute == "Go-Live Date"
        assert "yyyy-MM-dd" in str(excinfo.value)

    def test_unknown_type_is_sent_as_text(self):
        definition = AttributeDefinition(id=40, name="Region", type="USER_LIST")

        assert build_attribute_value(definition, " emea ") == AttributeValuePayload(40, value="emea")


class TestConfiguredAttributeValues:
    def test_exact_then_case_insensitive_lookup(self):
        values = _values({"Business Unit": "Finance", "number of users": 12})

        assert values.get("Business Unit") == "Finance"
        assert values.get("Number of Users") == "12"
        assert values.get("Owner Email") is None
        assert len(values) == 2

    def test_load_attribute_values_from_toml(self, tmp_path):
        attribute_file = tmp_path / "attributes.toml"
        attribute_file.write_text(
            '[attributes]\n"Business Unit" = "Finance"\n"Number of Users" = 250\n',
        )

        values = load_attribute_values(str(attribute_file))

        assert values.location == str(attribute_file)
        assert values.get("Business Unit") == "Finance"
        assert values.get("Number of Users") == "250"
