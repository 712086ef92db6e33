from pydantic import BaseModel, Field, field_validator

from .engine.catalog import OBJECTIVE_TYPES


class StatEvent(BaseModel):
    counter: str = Field(min_length=1, max_length=64)
    amount: int = Field(default=1, ge=0)


class StatBatch(BaseModel):
    stats: dict[str, int]

    @field_validator("stats")
    @classmethod
    def validate_amounts(cls, v):
        if not v:
            raise ValueError("at least one counter is required")
        for counter, amount in v.items():
            if amount < 0:
                raise ValueError(f"{counter}: counters only grow")
        return v


class TargetEvent(BaseModel):
    objective_type: str
    target_id: int
    amount: int = Field(default=1, ge=1)

    @field_validator("objective_type")
    @classmethod
    def validate_objective_type(cls, v):
        if v not in OBJECTIVE_TYPES:
            raise ValueError("unknown objective type")
        return v


class ProgressEvent(BaseModel):
    quest_id: int
    objective_id: int
    amount: int = Field(default=1, ge=1)


class LevelEvent(BaseModel):
    level: int = Field(ge=1)
