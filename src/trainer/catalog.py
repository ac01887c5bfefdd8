"""
Scenario catalog: parse descriptors once into a tagged union.

Input entries look like:
    {"id": "q1", "type": "question", "correctAnswers": [1, 3]}

Type-specific fields may also sit under a key named after the type (the
authoring tool's export shape) or under "content":
    {"id": "q1", "type": "question", "question": {"correctAnswers": [1, 3]}}

Entries that fail validation (unknown type, missing fields, duplicate id) are
quarantined at load time and logged; they never reach the progression engine.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Iterator, Literal, Union

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from config import get_settings

from .dialogue_graph import DialogueGraph, DialogueNode
from .errors import CatalogLoadError


# =============================================================================
# Descriptor Variants
# =============================================================================


class _ScenarioBase(BaseModel):
    """Fields shared by every scenario descriptor."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: str = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _flatten_content(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        merged = dict(data)
        for key in ("content", data.get("type")):
            nested = data.get(key) if isinstance(key, str) else None
            if isinstance(nested, dict):
                merged.pop(key, None)
                for name, value in nested.items():
                    merged.setdefault(name, value)
        return cls._normalize(merged)

    @classmethod
    def _normalize(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Per-type fixups applied after nested content is flattened."""
        return data

    @property
    def content_key(self) -> str:
        """Primary content key, used in interaction ids."""
        raise NotImplementedError

    @property
    def subtype(self) -> str:
        raise NotImplementedError


class QuestionScenario(_ScenarioBase):
    """A question with one or more correct option indices."""

    type: Literal["question"] = "question"
    question_key: str = "question_1"
    correct_answers: list[NonNegativeInt] = Field(min_length=1)
    is_multiple_choice: bool | None = None
    question_type: Literal["multiple_choice", "true_false"] = "multiple_choice"
    option_count: int | None = Field(default=None, ge=1)

    @classmethod
    def _normalize(cls, data: dict[str, Any]) -> dict[str, Any]:
        if "correctAnswers" not in data and "correct_answers" not in data:
            single = data.get("correctAnswer", data.get("correct_answer"))
            if single is not None:
                data = {**data, "correctAnswers": [single]}
        return data

    @field_validator("correct_answers")
    @classmethod
    def _dedupe(cls, value: list[int]) -> list[int]:
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def _check_bounds(self) -> "QuestionScenario":
        limit = 2 if self.question_type == "true_false" else self.option_count
        if limit is not None and any(index >= limit for index in self.correct_answers):
            raise ValueError(f"correct answer index out of range (options: {limit})")
        return self

    @property
    def content_key(self) -> str:
        return self.question_key

    @property
    def multiple_choice(self) -> bool:
        if self.is_multiple_choice is not None:
            return self.is_multiple_choice
        return len(self.correct_answers) > 1

    @property
    def subtype(self) -> str:
        if self.question_type == "true_false":
            return "true_false"
        return "multiple_choice" if self.multiple_choice else "single_choice"


class ProcedureStepSpec(BaseModel):
    """One ordered step of a procedure."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    step_key: str
    target_object_id: str = Field(min_length=1)
    validation_type: Literal["click", "zone", "manual"] = "click"

    @model_validator(mode="before")
    @classmethod
    def _legacy_manual_flag(cls, data: Any) -> Any:
        if isinstance(data, dict) and "validationType" not in data and data.get("requireManualValidation"):
            data = {**data, "validationType": "manual"}
        return data


class ProcedureScenario(_ScenarioBase):
    """An ordered sequence of steps on scene objects."""

    type: Literal["procedure"] = "procedure"
    procedure_key: str = "procedure"
    steps: list[ProcedureStepSpec] = Field(min_length=1)

    @field_validator("steps", mode="before")
    @classmethod
    def _default_step_keys(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        steps = []
        for number, step in enumerate(value, start=1):
            if isinstance(step, dict) and "stepKey" not in step and "step_key" not in step:
                step = {**step, "stepKey": f"step_{number}"}
            steps.append(step)
        return steps

    @property
    def content_key(self) -> str:
        return self.procedure_key

    @property
    def subtype(self) -> str:
        return "sequential"


class TextScenario(_ScenarioBase):
    """Informational text; always scored as complete."""

    type: Literal["text"] = "text"
    content_key_name: str = Field(default="text_content", alias="contentKey")

    @property
    def content_key(self) -> str:
        return self.content_key_name

    @property
    def subtype(self) -> str:
        return "informative"


class DialogueScenario(_ScenarioBase):
    """A branching dialogue graph."""

    type: Literal["dialogue"] = "dialogue"
    dialogue_key: str = "dialogue"
    start_node_id: str | None = None
    nodes: list[DialogueNode] = Field(min_length=1)

    @field_validator("nodes")
    @classmethod
    def _unique_node_ids(cls, value: list[DialogueNode]) -> list[DialogueNode]:
        ids = [node.id for node in value]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate node ids")
        return value

    @property
    def content_key(self) -> str:
        return self.dialogue_key

    @property
    def subtype(self) -> str:
        return "branching"

    def graph(self) -> DialogueGraph:
        return DialogueGraph(self.nodes, self.start_node_id, self.dialogue_key)


ScenarioDescriptor = Annotated[
    Union[QuestionScenario, ProcedureScenario, TextScenario, DialogueScenario],
    Field(discriminator="type"),
]

_DESCRIPTOR_ADAPTER: TypeAdapter[ScenarioDescriptor] = TypeAdapter(ScenarioDescriptor)


def parse_descriptor(raw: dict[str, Any]) -> ScenarioDescriptor:
    """
    Parse one raw entry.

    Raises:
        pydantic.ValidationError: The entry is malformed.
    """
    return _DESCRIPTOR_ADAPTER.validate_python(raw)


# =============================================================================
# Catalog
# =============================================================================


@dataclass(frozen=True)
class QuarantinedEntry:
    """An entry rejected at load time."""

    index: int
    scenario_id: str | None
    reason: str


@dataclass(frozen=True)
class ScenarioCatalog:
    """Ordered, immutable list of parsed scenario descriptors."""

    training_id: str
    scenarios: tuple[ScenarioDescriptor, ...]
    quarantined: tuple[QuarantinedEntry, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.scenarios)

    def __iter__(self) -> Iterator[ScenarioDescriptor]:
        return iter(self.scenarios)

    def __getitem__(self, index: int) -> ScenarioDescriptor:
        return self.scenarios[index]

    def get(self, scenario_id: str) -> ScenarioDescriptor | None:
        for scenario in self.scenarios:
            if scenario.id == scenario_id:
                return scenario
        return None


def _summarize(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid")
    return f"{location}: {message}" if location else message


def load_catalog(raw: list[Any] | dict[str, Any], training_id: str | None = None) -> ScenarioCatalog:
    """
    Build a catalog from raw JSON-like data.

    Args:
        raw: Either a list of scenario entries, or an object with
            "scenarios" (and optionally "trainingId").
        training_id: Overrides the catalog's own trainingId. When neither is
            given the configured default is used.

    Returns:
        ScenarioCatalog with valid entries in input order and the rejected
        ones listed in `quarantined`.
    """
    if isinstance(raw, dict):
        entries = raw.get("scenarios")
        training_id = training_id or raw.get("trainingId")
    else:
        entries = raw
    if not isinstance(entries, list):
        raise CatalogLoadError("Catalog must be a list of scenarios or an object with 'scenarios'")

    if not training_id:
        training_id = get_settings().training_id

    scenarios: list[ScenarioDescriptor] = []
    quarantined: list[QuarantinedEntry] = []
    seen: set[str] = set()

    for index, entry in enumerate(entries):
        entry_id = entry.get("id") if isinstance(entry, dict) else None
        if not isinstance(entry_id, str):
            entry_id = None
        if not isinstance(entry, dict):
            reason = "entry is not an object"
        elif entry_id in seen:
            reason = f"duplicate id '{entry_id}'"
        else:
            try:
                descriptor = parse_descriptor(entry)
            except ValidationError as e:
                reason = _summarize(e)
            else:
                scenarios.append(descriptor)
                seen.add(descriptor.id)
                if isinstance(descriptor, DialogueScenario):
                    for issue in descriptor.graph().validate():
                        logger.warning(f"Dialogue '{descriptor.id}': {issue.describe()}")
                continue

        quarantined.append(QuarantinedEntry(index, entry_id, reason))
        logger.warning(f"Quarantined catalog entry #{index} ({entry_id}): {reason}")

    logger.info(
        f"Loaded catalog '{training_id}': {len(scenarios)} scenarios, {len(quarantined)} quarantined"
    )
    return ScenarioCatalog(training_id, tuple(scenarios), tuple(quarantined))


def load_catalog_file(path: str | Path, training_id: str | None = None) -> ScenarioCatalog:
    """Read a JSON catalog file and load it."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogLoadError(f"Cannot read catalog {path}: {e}") from e
    return load_catalog(raw, training_id)
