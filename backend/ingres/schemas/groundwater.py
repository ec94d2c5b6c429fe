# ingres/schemas/groundwater.py
from __future__ import annotations

from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

AdministrativeLevel = Literal["national", "state", "district", "block"]
ExtractionCategory = Literal["Safe", "Semi-Critical", "Critical", "Over-Exploited"]


class _Camel(BaseModel):
    # the portal API speaks camelCase
    model_config = ConfigDict(populate_by_name=True)


class RegionIdentifier(_Camel):
    level: AdministrativeLevel
    id: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = Field(default=None, min_length=1)
    name: Optional[str] = Field(default=None, min_length=1)

    def key(self) -> str:
        return self.id or self.code or self.name or ""


class GeoLocation(_Camel):
    lat: Optional[float] = None
    lon: Optional[float] = None


class AssessmentMetrics(_Camel):
    annual_recharge_bcm: float = Field(alias="annualRechargeBcm", ge=0)
    extractable_resources_bcm: float = Field(alias="extractableResourcesBcm", ge=0)
    total_extraction_bcm: float = Field(alias="totalExtractionBcm", ge=0)
    stage_of_extraction_percent: float = Field(alias="stageOfExtractionPercent", ge=0)
    category: ExtractionCategory


class UsageBreakdown(_Camel):
    irrigation_bcm: Optional[float] = Field(default=None, alias="irrigationBcm", ge=0)
    domestic_bcm: Optional[float] = Field(default=None, alias="domesticBcm", ge=0)
    industrial_bcm: Optional[float] = Field(default=None, alias="industrialBcm", ge=0)


class GroundwaterAssessment(_Camel):
    region: RegionIdentifier
    level: AdministrativeLevel
    assessment_year: int = Field(alias="assessmentYear", ge=1900, le=3000)
    geo: Optional[GeoLocation] = None
    metrics: AssessmentMetrics
    usage_breakdown: Optional[UsageBreakdown] = Field(default=None, alias="usageBreakdown")
    notes: Optional[str] = None


class TrendPoint(_Camel):
    year: int
    stage_of_extraction_percent: float = Field(alias="stageOfExtractionPercent", ge=0)
    annual_recharge_bcm: Optional[float] = Field(default=None, alias="annualRechargeBcm", ge=0)
    total_extraction_bcm: Optional[float] = Field(default=None, alias="totalExtractionBcm", ge=0)


class ProjectionPoint(_Camel):
    year: int
    projected_stage_of_extraction_percent: float = Field(alias="projectedStageOfExtractionPercent", ge=0)
    lower_ci: Optional[float] = Field(default=None, alias="lowerCI", ge=0)
    upper_ci: Optional[float] = Field(default=None, alias="upperCI", ge=0)


class TrendMethod(_Camel):
    technique: Literal["naive", "moving-average", "linear-regression", "arima"] = "naive"
    generated_at: Optional[str] = Field(default=None, alias="generatedAt")


class TrendAnalysis(_Camel):
    region: RegionIdentifier
    level: AdministrativeLevel
    history: List[TrendPoint]
    projections: Optional[List[ProjectionPoint]] = None
    method: Optional[TrendMethod] = None


class RegionMetric(_Camel):
    region: RegionIdentifier
    level: AdministrativeLevel
    assessment_year: int = Field(alias="assessmentYear")
    category: ExtractionCategory
    stage_of_extraction_percent: float = Field(alias="stageOfExtractionPercent", ge=0)
    annual_recharge_bcm: Optional[float] = Field(default=None, alias="annualRechargeBcm", ge=0)
    total_extraction_bcm: Optional[float] = Field(default=None, alias="totalExtractionBcm", ge=0)


class RegionalComparison(_Camel):
    compared_at: Optional[str] = Field(default=None, alias="comparedAt")
    metrics: List[RegionMetric]
    insights: Optional[List[str]] = None


T = TypeVar("T")


class QueryResult(BaseModel, Generic[T]):
    """Tagged outcome: real data, a labelled synthetic placeholder, or an error."""

    status: Literal["ok", "fallback", "error"]
    data: Optional[T] = None
    reason: Optional[str] = None

    @property
    def is_real(self) -> bool:
        return self.status == "ok"
