from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------
# Sampling
# ---------------------------
SampleMethod = Literal["tablesample", "row_number", "random_order", "stratified"]
TableSampleMethod = Literal["bernoulli", "system", "reservoir"]


class SampleSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: SampleMethod = "tablesample"
    # tablesample
    percent: Optional[float] = Field(None, gt=0, le=100)
    rows: Optional[int] = Field(None, gt=0)
    sampling: Optional[TableSampleMethod] = None
    # row_number / random_order
    n: Optional[int] = Field(None, gt=0)
    order_by: Optional[str] = None
    # stratified
    by: Optional[str] = None
    n_per_group: Optional[int] = Field(None, gt=0)

    seed: Optional[int] = None
    columns: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_method_params(self) -> "SampleSpec":
        if self.method == "tablesample":
            if (self.percent is None) == (self.rows is None):
                raise ValueError("tablesample requires exactly one of 'percent' or 'rows'")
        elif self.method in ("row_number", "random_order"):
            if self.n is None:
                raise ValueError(f"{self.method} sampling requires 'n'")
        elif self.method == "stratified":
            if not self.by or self.n_per_group is None:
                raise ValueError("stratified sampling requires 'by' and 'n_per_group'")
        return self


# ---------------------------
# Modeling / scoring
# ---------------------------
class ModelSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    table: str
    response: str
    predictors: List[str] = Field(default_factory=list)
    categorical: List[str] = Field(default_factory=list)
    add_intercept: bool = True
    # fit on the whole table when omitted
    sample: Optional[SampleSpec] = None


class ScoreSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    table: str
    columns: List[str] = Field(default_factory=list)
    fitted_column: str = "fitted"
    limit: int = Field(100, gt=0, le=10000)
    # persist every scored row into this table instead of returning a preview
    into: Optional[str] = None


class AccuracySpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    table: str
    threshold: Optional[float] = Field(None, gt=0)


class VerifySpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    table: str
    max_rows: int = Field(1000, gt=0, le=100000)
    tolerance: float = Field(1e-8, gt=0)


# ---------------------------
# Responses
# ---------------------------
class TableInfo(BaseModel):
    name: str
    row_count: int
    columns: List[Dict[str, str]] = Field(default_factory=list)


class FrameResponse(BaseModel):
    columns: List[str]
    data: List[dict]
    row_count: int


class ModelResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    table: str
    response: str
    terms: List[str]
    summary: dict
    sql: str


class SqlResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    sql: str


class AccuracyResponse(BaseModel):
    n: int
    accurate: int
    inaccurate: int
    accuracy: float
    mae: float
    rmse: float
    threshold: float


class VerifyResponse(BaseModel):
    rows: int
    max_abs_diff: float
    mae: float
    tolerance: float
    passed: bool
