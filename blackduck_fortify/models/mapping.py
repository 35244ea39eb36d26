from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from enum import Enum


class ResolutionState(str, Enum):
    UNRESOLVED = "UNRESOLVED"
    RESOLVED = "RESOLVED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class MappingEntry:
    """One Black Duck project version declared to feed one Fortify application version."""

    source_project: str
    source_project_version: str
    target_application_name: str
    target_application_version: str

    @property
    def key(self) -> str:
        return f"{self.target_application_name}_{self.target_application_version}"


@dataclass(frozen=True)
class SourceProjectVersion:
    project: str
    version: str


@dataclass(frozen=True)
class MappingGroup:
    """
    All Black Duck project versions that push into one Fortify application
    version, together with the resolution state of that Fortify version.

    Groups are immutable: `resolved()` and `failed()` return the next state
    instead of mutating the group, so a group can be handed to a worker and
    its result collected without sharing state.
    """

    target_application_name: str
    target_application_version: str
    source_project_versions: tuple[SourceProjectVersion, ...] = ()
    application_id: int | None = None
    state: ResolutionState = ResolutionState.UNRESOLVED
    error: Exception | None = field(default=None, compare=False)

    @property
    def key(self) -> str:
        return f"{self.target_application_name}_{self.target_application_version}"

    def resolved(self, application_id: int) -> "MappingGroup":
        return replace(
            self,
            application_id=application_id,
            state=ResolutionState.RESOLVED,
            error=None,
        )

    def failed(self, error: Exception) -> "MappingGroup":
        return replace(
            self,
            application_id=None,
            state=ResolutionState.FAILED,
            error=error,
        )

    def to_dict(self) -> dict:
        return {
            "fortifyApplication": self.target_application_name,
            "fortifyApplicationVersion": self.target_application_version,
            "fortifyApplicationId": self.application_id,
            "state": self.state.value,
            "error": str(self.error) if self.error else None,
            "hubProjectVersions": [
                {"hubProject": spv.project, "hubProjectVersion": spv.version}
                for spv in self.source_project_versions
            ],
        }
