"""
Schema for saved external market analyses.

Analyses are produced by third-party chat-completion APIs and stored as JSON.
They are validated here before anything downstream reads them.
"""
from __future__ import annotations

import json
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from clientdash_web.domain.errors import MalformedAnalysisError


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class Risk(_Schema):
    risk: str
    explanation: str


class Opportunity(_Schema):
    opportunity: str
    context: str


class Source(_Schema):
    authors: str = ""
    title: str
    source: str = ""
    url: str = ""
    credibility: str = ""


class ExternalAnalysisData(_Schema):
    kind: Literal["external"] = "external"
    executive_summary: List[str] = Field(alias="executiveSummary")
    company_risks: List[Risk] = Field(default_factory=list, alias="companyRisks")
    company_opportunities: List[Opportunity] = Field(default_factory=list, alias="companyOpportunities")
    industry_risks: List[Risk] = Field(default_factory=list, alias="industryRisks")
    industry_opportunities: List[Opportunity] = Field(default_factory=list, alias="industryOpportunities")
    sources: List[Source] = Field(default_factory=list)


class ExternalAnalysis(_Schema):
    id: str
    client_id: str
    search_term: str
    created_at: str
    data: ExternalAnalysisData


def parse_external_analysis(
    analysis_id: str,
    client_id: str,
    search_term: str,
    created_at: str,
    payload: str | bytes | dict,
) -> ExternalAnalysis:
    """Validate one stored analysis row. Raises MalformedAnalysisError on any shape problem."""
    try:
        data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
    except json.JSONDecodeError as e:
        raise MalformedAnalysisError(analysis_id, f"invalid JSON ({e.msg})") from e
    except UnicodeDecodeError as e:
        raise MalformedAnalysisError(analysis_id, f"undecodable bytes ({e.reason})") from e

    try:
        return ExternalAnalysis(
            id=analysis_id,
            client_id=client_id,
            search_term=search_term,
            created_at=created_at,
            data=data,
        )
    except ValidationError as e:
        raise MalformedAnalysisError(analysis_id, f"{e.error_count()} validation error(s)") from e
