# config.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .errors import MissingInputError


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    # ValueError so pydantic reports it as a ValidationError
    raise ValueError("requires must be a string or a list of strings")


class Annotations(BaseModel):
    model_config = ConfigDict(extra="ignore")

    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "screwdriver.cd/displayName", "display_name"),
    )
    virtual_job: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("virtualJob", "screwdriver.cd/virtualJob", "virtual_job"),
    )


class JobStage(BaseModel):
    """Stage membership of a job. start_from marks the stage's re-entry job."""
    model_config = ConfigDict(extra="ignore")

    name: str
    start_from: bool = Field(default=False, validation_alias=AliasChoices("startFrom", "start_from"))


class JobConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    requires: List[str] = Field(default_factory=list)
    stage: Optional[JobStage] = None
    annotations: Annotations = Field(default_factory=Annotations)

    @field_validator("requires", mode="before")
    @classmethod
    def _requires_list(cls, v: Any) -> List[str]:
        return _as_list(v)

    @field_validator("annotations", mode="before")
    @classmethod
    def _annotations_default(cls, v: Any) -> Any:
        return {} if v is None else v


class StageConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    requires: List[str] = Field(default_factory=list)
    jobs: List[str] = Field(default_factory=list)

    @field_validator("requires", "jobs", mode="before")
    @classmethod
    def _list(cls, v: Any) -> List[str]:
        return _as_list(v)


class PipelineConfig(BaseModel):
    """
    Parsed pipeline definition.

        {
          "jobs": {"main": {"requires": ["~commit"]}, "test": {"requires": "main"}},
          "stages": {"deploy": {"requires": ["test"], "jobs": ["prod"]}}
        }
    """
    model_config = ConfigDict(extra="ignore")

    jobs: Optional[Dict[str, JobConfig]] = None
    stages: Dict[str, StageConfig] = Field(default_factory=dict)

    @field_validator("jobs", mode="before")
    @classmethod
    def _jobs_default(cls, v: Any) -> Any:
        # `foo: {}` and `foo:` (null) both mean a job with no settings
        if isinstance(v, Mapping):
            return {name: ({} if cfg is None else cfg) for name, cfg in v.items()}
        return v

    @field_validator("stages", mode="before")
    @classmethod
    def _stages_default(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, Mapping):
            return {name: ({} if cfg is None else cfg) for name, cfg in v.items()}
        return v

    def stage_of(self, job_name: str) -> Optional[str]:
        """Stage a job belongs to: its own `stage` block first, then stage `jobs` lists."""
        job = (self.jobs or {}).get(job_name)
        if job is not None and job.stage is not None:
            return job.stage.name
        for stage_name, stage in self.stages.items():
            if job_name in stage.jobs:
                return stage_name
        return None


def coerce_pipeline(config: PipelineConfig | Mapping[str, Any] | None) -> PipelineConfig:
    if config is None:
        raise MissingInputError("No Job config provided")
    if isinstance(config, PipelineConfig):
        return config
    return PipelineConfig.model_validate(dict(config))
