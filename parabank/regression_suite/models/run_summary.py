"""Models for persisted run results (cucumber JSON shape)."""

from datetime import datetime
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    computed_field,
    field_serializer,
    field_validator,
)

StepStatus = Literal[
    "passed", "failed", "skipped", "pending", "undefined", "ambiguous", "unknown"
]
ScenarioStatus = Literal["passed", "failed", "skipped"]


class StepOutcome(BaseModel):
    """Result block of a single step."""

    model_config = ConfigDict(frozen=True)

    status: StepStatus = Field(default="undefined", description="Step status")
    duration: float = Field(default=0.0, description="Execution time in seconds")
    error_message: str | None = Field(
        default=None, description="Failure message, if any"
    )


class StepResult(BaseModel):
    """Recorded result of one step. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Step text")
    keyword: str = Field(default="", description="Gherkin keyword or hook name")
    result: StepOutcome = Field(
        default_factory=StepOutcome, description="Step outcome"
    )

    @property
    def status(self) -> StepStatus:
        """Shortcut to the outcome status."""
        return self.result.status

    @property
    def error_message(self) -> str | None:
        """Shortcut to the outcome error message."""
        return self.result.error_message

    @property
    def duration(self) -> float:
        """Shortcut to the outcome duration."""
        return self.result.duration


class ScenarioResult(BaseModel):
    """Result of a single scenario execution."""

    id: str = Field(default="", description="Scenario identifier")
    name: str = Field(..., description="Scenario display name")
    keyword: str = Field(default="Scenario", description="Gherkin keyword")
    tags: list[str] = Field(default_factory=list, description="Scenario tags")
    steps: list[StepResult] = Field(
        default_factory=list, description="Ordered step results"
    )
    started_at: datetime | None = Field(default=None, description="Start time")
    finished_at: datetime | None = Field(default=None, description="End time")
    evidence: list[str] = Field(
        default_factory=list, description="Paths of captured evidence files"
    )

    @field_validator("tags", mode="before")
    @classmethod
    def _tag_names(cls, value: object) -> object:
        # Cucumber writes tags as [{"name": "@ui", "line": 3}]
        if isinstance(value, list):
            return [
                item.get("name", "") if isinstance(item, dict) else item
                for item in value
            ]
        return value

    @field_serializer("tags")
    def _serialize_tags(self, tags: list[str]) -> list[dict[str, str]]:
        return [{"name": tag} for tag in tags]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> ScenarioStatus:
        """Overall status derived from the step results."""
        statuses = [step.status for step in self.steps]
        if not statuses or all(status == "skipped" for status in statuses):
            return "skipped"
        if all(status in {"passed", "skipped"} for status in statuses):
            return "passed"
        return "failed"

    @property
    def error_message(self) -> str | None:
        """First step error message, if any."""
        for step in self.steps:
            if step.error_message:
                return step.error_message
        return None

    @property
    def duration(self) -> float:
        """Sum of step durations in seconds."""
        return sum(step.duration for step in self.steps)


class FeatureResult(BaseModel):
    """A feature and its scenarios."""

    name: str = Field(..., description="Feature name")
    uri: str = Field(default="", description="Feature file location")
    elements: list[ScenarioResult] = Field(
        default_factory=list, description="Ordered scenario results"
    )


class RunSummary(RootModel[list[FeatureResult]]):
    """One suite execution, persisted as a JSON array of features."""

    root: list[FeatureResult] = Field(default_factory=list)

    @property
    def features(self) -> list[FeatureResult]:
        """Features in encounter order."""
        return self.root

    def scenarios(self) -> list[tuple[FeatureResult, ScenarioResult]]:
        """Flatten to (feature, scenario) pairs in encounter order."""
        return [
            (feature, scenario)
            for feature in self.root
            for scenario in feature.elements
        ]

    def add(self, feature_name: str, scenario: ScenarioResult) -> None:
        """Append a scenario under its feature, creating the feature if new."""
        for feature in self.root:
            if feature.name == feature_name:
                feature.elements.append(scenario)
                return
        self.root.append(FeatureResult(name=feature_name, elements=[scenario]))
