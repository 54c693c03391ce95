# src/pagehealth/model.py
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Link(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    href: str


class PageSnapshot(BaseModel):
    """
    Immutable capture of a single fetched page.
    Shared read-only by every validator during one analysis run.
    """
    model_config = ConfigDict(frozen=True)

    source_url: str
    raw_html: str = ""
    text_representation: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    screenshot: Optional[str] = None
    discovered_links: List[Link] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("discovered_links", mode="before")
    @classmethod
    def _coerce_links(cls, v: Any) -> List[Any]:
        # Acquisition clients report links either as bare hrefs or {text, href} pairs
        if not v:
            return []
        return [{"text": "", "href": item} if isinstance(item, str) else item for item in v]

    @property
    def title(self) -> str:
        return str(self.metadata.get("title") or "")

    @property
    def status_code(self) -> Optional[int]:
        return self.metadata.get("status_code")


class IssueKind(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Issue(BaseModel):
    """
    A single finding produced by a validator.

    `severity` holds the validator-specific level (e.g. 'critical' for
    accessibility, 'high' for SEO/security). Issues without a severity never
    carry a score deduction under severity-keyed policies.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    kind: IssueKind
    message: str
    locator: Optional[str] = None
    severity: Optional[str] = None
    category: Optional[str] = None


class ValidatorDescriptor(BaseModel):
    """Declarative entry of the configured check list."""
    id: str
    label: str
    enabled: bool = True


class ValidatorResult(BaseModel):
    """
    Normalized report unit, one per validator per analysis run.
    Serializes to the camelCase wire shape through `to_json_dict()`.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True, populate_by_name=True)

    id: str
    label: str
    status: ResultStatus
    score: Optional[int] = Field(default=None, ge=0, le=100)
    message: str
    issues: List[Issue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    timestamp: int
    data_source: Optional[str] = Field(default=None, alias="dataSource")
    report_id: Optional[str] = Field(default=None, alias="reportId")

    def to_json_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"issues"})
        data["issues"] = [issue.model_dump() for issue in self.issues]
        for key in ("score", "dataSource", "reportId"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_json_dict(), ensure_ascii=False)
