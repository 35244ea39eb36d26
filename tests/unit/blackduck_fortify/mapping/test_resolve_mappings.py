import json

import pytest

from blackduck_fortify.exceptions import ApplicationLookupError
from blackduck_fortify.exceptions import AttributeCatalogError
from blackduck_fortify.exceptions import MappingLoadError
from blackduck_fortify.fortify.attribute_values import ConfiguredAttributeValues
from blackduck_fortify.mapping import resolve_groups
from blackduck_fortify.mapping import resolve_mappings
from blackduck_fortify.mapping.parser import group_mappings
from blackduck_fortify.mapping.parser import parse_mapping_entries
from blackduck_fortify.models.fortify import DEFAULT_BASELINE_TEMPLATE
from blackduck_fortify.models.mapping import ResolutionState
from blackduck_fortify.models.mapping import SourceProjectVersion
from tests.data.fortify.attribute_definitions import ATTRIBUTE_VALUES_LOCATION
from tests.data.fortify.attribute_definitions import NULL_FIELD_ATTRIBUTE_DEFINITIONS
from tests.data.fortify.attribute_definitions import RESERVED_ATTRIBUTE_DEFINITIONS
from tests.data.fortify.client import FakeFortifyClient
from tests.data.fortify.mapping import END_TO_END_MAPPING
from tests.data.fortify.mapping import MAPPING_DATA
from tests.data.fortify.mapping import MAPPING_DATA_EMPTY_VERSION

NO_VALUES = ConfiguredAttributeValues({}, ATTRIBUTE_VALUES_LOCATION)
EXISTING_APPLICATIONS = {
    "Payments": {"id": 40, "versions": {"2.x": 401, "3.x": 402}},
    "Ledger": {"id": 50, "versions": {"1.0": 501}},
}


def test_end_to_end_new_application():
    """
    Two Black Duck projects mapped to one missing Fortify application version
    produce one group, one create, one baseline-only attribute update and one commit.
    """
    client = FakeFortifyClient(attribute_definitions=RESERVED_ATTRIBUTE_DEFINITIONS)

    groups = resolve_mappings(END_TO_END_MAPPING, client, NO_VALUES)

    assert len(groups) == 1
    group = groups[0]
    assert group.key == "App1_v1"
    assert group.state == ResolutionState.RESOLVED
    assert group.source_project_versions == (
        SourceProjectVersion("A", "1.0"),
        SourceProjectVersion("B", "2.0"),
    )
    assert group.application_id == client.applications["App1"]["versions"]["v1"]

    assert len(client.calls_to("create_application_version")) == 1
    updates = client.calls_to("update_application_attributes")
    assert len(updates) == 1
    assert updates[0][2] == list(DEFAULT_BASELINE_TEMPLATE)
    assert client.calls_to("commit_application_version") == [
        ("commit_application_version", group.application_id),
    ]


def test_resolution_happens_once_per_key():
    client = FakeFortifyClient(applications=EXISTING_APPLICATIONS)

    groups = resolve_mappings(MAPPING_DATA, client, NO_VALUES)

    assert [(g.key, g.application_id) for g in groups] == [
        ("Payments_2.x", 401),
        ("Ledger_1.0", 501),
        ("Payments_3.x", 402),
    ]
    queries = [call[2] for call in client.calls_to("get_application_versions")]
    assert queries == [
        "name:2.x+and+project.name:Payments",
        "name:1.0+and+project.name:Ledger",
        "name:3.x+and+project.name:Payments",
    ]
    assert client.calls_to("create_application_version") == []


def test_resolution_is_idempotent_across_runs():
    client = FakeFortifyClient(attribute_definitions=RESERVED_ATTRIBUTE_DEFINITIONS)

    first = resolve_mappings(MAPPING_DATA, client, NO_VALUES)
    creates_after_first_run = len(client.calls_to("create_application_version"))
    second = resolve_mappings(MAPPING_DATA, client, NO_VALUES)

    assert creates_after_first_run == 3
    assert len(client.calls_to("create_application_version")) == 3
    assert {g.key: g.application_id for g in first} == {g.key: g.application_id for g in second}
    assert {g.key: set(g.source_project_versions) for g in first} == {
        g.key: set(g.source_project_versions) for g in second
    }


def test_failed_group_does_not_block_the_others():
    client = FakeFortifyClient(applications=EXISTING_APPLICATIONS, lookup_fails_for={"Ledger"})

    groups = resolve_mappings(MAPPING_DATA, client, NO_VALUES)

    states = {g.key: g.state for g in groups}
    assert states == {
        "Payments_2.x": ResolutionState.RESOLVED,
        "Ledger_1.0": ResolutionState.FAILED,
        "Payments_3.x": ResolutionState.RESOLVED,
    }
    assert isinstance(groups[1].error, ApplicationLookupError)


def test_malformed_mapping_aborts_before_any_lookup():
    client = FakeFortifyClient(applications=EXISTING_APPLICATIONS)

    with pytest.raises(MappingLoadError):
        resolve_mappings(MAPPING_DATA_EMPTY_VERSION, client, NO_VALUES)

    assert client.calls == []


def test_resolve_mappings_from_file(tmp_path):
    mapping_file = tmp_path / "mapping.json"
    mapping_file.write_text(json.dumps(MAPPING_DATA))
    client = FakeFortifyClient(applications=EXISTING_APPLICATIONS)

    groups = resolve_mappings(str(mapping_file), client, NO_VALUES)

    assert [g.application_id for g in groups] == [401, 501, 402]


def test_parallel_resolution_keeps_first_seen_order():
    client = FakeFortifyClient(applications=EXISTING_APPLICATIONS)
    groups = group_mappings(parse_mapping_entries(MAPPING_DATA))

    resolved = resolve_groups(client, groups, NO_VALUES, max_workers=4)

    assert [g.key for g in resolved] == ["Payments_2.x", "Ledger_1.0", "Payments_3.x"]
    assert [g.application_id for g in resolved] == [401, 501, 402]
    assert len(client.calls_to("get_application_versions")) == 3


@pytest.mark.parametrize("raw_definition", NULL_FIELD_ATTRIBUTE_DEFINITIONS)
def test_malformed_catalog_record_fails_only_the_group_that_needs_it(raw_definition):
    applications = {"Payments": {"id": 40, "versions": {"2.x": 401, "3.x": 402}}}
    client = FakeFortifyClient(applications=applications, attribute_definitions=[raw_definition])

    groups = resolve_mappings(MAPPING_DATA, client, NO_VALUES)

    assert [(g.key, g.state) for g in groups] == [
        ("Payments_2.x", ResolutionState.RESOLVED),
        ("Ledger_1.0", ResolutionState.FAILED),
        ("Payments_3.x", ResolutionState.RESOLVED),
    ]
    assert isinstance(groups[1].error, AttributeCatalogError)
    assert client.calls_to("create_application_version") == []
