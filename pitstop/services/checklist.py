"""
Inspection checklist definition and progress calculation

The checklist is a static JSON document loaded once at startup. It is
the same for every event and is never mutated at runtime.
"""
import json
import logging
from typing import Dict, Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from pitstop.error_handlers.exceptions import ConfigurationException
from .inspection_types import InspectionProgress

logger = logging.getLogger(__name__)


class ChecklistOption(BaseModel):
    """One choice of a SELECT item"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    label: str
    order: int
    is_sentinel: Optional[bool] = Field(default=None, alias='isSentinel')


class ChecklistSection(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    key: str
    label: str
    order: int


class ChecklistItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(min_length=1, max_length=128)
    label: str
    section_id: str = Field(alias='sectionId')
    required: bool = False
    input_type: Literal['CHECKBOX', 'SELECT', 'NUMBER'] = Field(alias='inputType')
    rule_code: str = Field(default='', alias='ruleCode')
    options: Optional[List[ChecklistOption]] = None


class Checklist(BaseModel):
    """
    Ordered sections and items of the inspection checklist.

    Every item must reference an existing section and item keys must be
    unique.
    """
    model_config = ConfigDict(frozen=True)

    sections: List[ChecklistSection]
    items: List[ChecklistItem]

    @model_validator(mode='after')
    def _check_references(self) -> 'Checklist':
        section_ids = {section.id for section in self.sections}
        seen = set()
        for item in self.items:
            if item.section_id not in section_ids:
                raise ValueError(
                    f'Item "{item.key}" references unknown section "{item.section_id}"'
                )
            if item.key in seen:
                raise ValueError(f'Duplicate checklist item key "{item.key}"')
            seen.add(item.key)
        return self

    @classmethod
    def from_dict(cls, data: Mapping) -> 'Checklist':
        """
        Raises:
            ConfigurationException: If the definition is invalid
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationException(f'Invalid inspection checklist: {e}')

    @classmethod
    def load(cls, path: str) -> 'Checklist':
        """
        Read the checklist JSON file.

        Raises:
            ConfigurationException: If the file is missing, unreadable or invalid
        """
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationException(f'Could not read inspection checklist {path}: {e}')

        checklist = cls.from_dict(data)
        logger.info(
            f"Loaded inspection checklist: {len(checklist.sections)} sections, "
            f"{len(checklist.items)} items ({len(checklist.required_keys)} required)"
        )
        return checklist

    @property
    def required_keys(self) -> frozenset:
        return frozenset(item.key for item in self.items if item.required)

    def to_dict(self) -> Dict[str, list]:
        """The definition verbatim, in the JSON field names."""
        return {
            'sections': [s.model_dump(by_alias=True) for s in self.sections],
            'items': [i.model_dump(by_alias=True, exclude_none=True) for i in self.items],
        }


def is_answered(value: Optional[str]) -> bool:
    return value is not None and value != ''


def calculate_progress(responses: Mapping[str, Optional[str]],
                       required_keys: Iterable[str]) -> InspectionProgress:
    """
    Count how many required items have a non-empty response.

    Pure function: a required key is complete iff it is present in
    `responses` with a value that is neither None nor ''.

    Example:
        >>> calculate_progress({'a': 'ok', 'b': ''}, {'a', 'b', 'c'})
        InspectionProgress(completed_required=1, missing_required=2, total_required=3)
    """
    required = set(required_keys)
    completed = sum(1 for key in required if is_answered(responses.get(key)))
    return InspectionProgress(
        completed_required=completed,
        missing_required=len(required) - completed,
        total_required=len(required),
    )
