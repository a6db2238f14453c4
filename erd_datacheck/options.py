from __future__ import annotations

from typing import FrozenSet

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .types import CATEGORIES, Category


class ValidationOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    error_weight: float = Field(default=3.0, gt=0)
    warning_weight: float = Field(default=1.0, gt=0)
    categories: FrozenSet[Category] = frozenset(CATEGORIES)

    @model_validator(mode="after")
    def _errors_outweigh_warnings(self) -> "ValidationOptions":
        if self.error_weight <= self.warning_weight:
            raise ValueError("error_weight must be greater than warning_weight")
        return self

    def enabled(self, category: Category) -> bool:
        return category in self.categories


DEFAULT_OPTIONS = ValidationOptions()
