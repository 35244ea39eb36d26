"""
Parser for the mapping file that links Black Duck project versions to Fortify
application versions.

Mapping file format (a JSON array):
    [
        {
            "hubProject": "payments-service",
            "hubProjectVersion": "2.3.0",
            "fortifyApplication": "Payments",
            "fortifyApplicationVersion": "2.x"
        }
    ]

Several Black Duck project versions may point at the same Fortify
application version; they are grouped so the Fortify version is resolved
once and receives the vulnerabilities of every project version in the group.
"""

import json
import logging
import os
from typing import Any
from typing import Sequence

from blackduck_fortify.exceptions import MappingLoadError
from blackduck_fortify.models.mapping import MappingEntry
from blackduck_fortify.models.mapping import MappingGroup
from blackduck_fortify.models.mapping import SourceProjectVersion

logger = logging.getLogger(__name__)

MAPPING_FIELDS = {
    "hubProject": "source_project",
    "hubProjectVersion": "source_project_version",
    "fortifyApplication": "target_application_name",
    "fortifyApplicationVersion": "target_application_version",
}

MappingSource = str | os.PathLike | Sequence[dict[str, Any]]


def parse_mapping_entries(data: Any) -> list[MappingEntry]:
    """
    Validate decoded mapping data and turn it into MappingEntry objects.

    Raises:
        MappingLoadError: if the data is not a list of objects, or any entry
            lacks one of the four fields or has an empty value
    """
    if not isinstance(data, list):
        raise MappingLoadError("Mapping data must be a JSON array of mapping objects")

    entries: list[MappingEntry] = []
    for index, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise MappingLoadError(f"Mapping entry #{index} must be a JSON object")
        kwargs = {}
        for wire_name, field_name in MAPPING_FIELDS.items():
            value = raw.get(wire_name)
            if not isinstance(value, str) or not value.strip():
                raise MappingLoadError(
                    f"Mapping entry #{index} has a missing or empty '{wire_name}' field",
                )
            kwargs[field_name] = value
        entries.append(MappingEntry(**kwargs))
    return entries


def load_mapping_file(file_path: str | os.PathLike) -> list[MappingEntry]:
    """
    Read the mapping file and parse its entries.

    Raises:
        MappingLoadError: if the file cannot be read, is not valid JSON, or
            holds a malformed entry
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        logger.error("File Not Found for creating Mappings: %s", file_path)
        raise MappingLoadError(f"Error finding the mapping file :: {file_path}") from e
    except OSError as e:
        raise MappingLoadError(f"Error reading the mapping file {file_path}: {e}") from e
    except json.JSONDecodeError as e:
        raise MappingLoadError(f"Mapping file {file_path} is not valid JSON: {e}") from e
    return parse_mapping_entries(data)


def load_mapping_entries(source: MappingSource) -> list[MappingEntry]:
    """
    Load mapping entries from a file path or from already decoded mapping data.
    """
    if isinstance(source, (str, os.PathLike)):
        entries = load_mapping_file(source)
    else:
        entries = parse_mapping_entries(list(source))
    logger.info("Loaded %d mapping entries", len(entries))
    return entries


def group_mappings(entries: Sequence[MappingEntry]) -> list[MappingGroup]:
    """
    Group mapping entries by Fortify application name and version.

    Matching is exact and case-sensitive. Groups come out in the order their
    application version is first seen; each group keeps its Black Duck
    project versions in input order. All groups are unresolved.
    """
    sources: dict[tuple[str, str], list[SourceProjectVersion]] = {}
    for entry in entries:
        target = (entry.target_application_name, entry.target_application_version)
        sources.setdefault(target, []).append(
            SourceProjectVersion(entry.source_project, entry.source_project_version),
        )

    groups = [
        MappingGroup(
            target_application_name=name,
            target_application_version=version,
            source_project_versions=tuple(project_versions),
        )
        for (name, version), project_versions in sources.items()
    ]
    logger.info("Grouped %d mapping entries into %d Fortify application versions", len(entries), len(groups))
    return groups
