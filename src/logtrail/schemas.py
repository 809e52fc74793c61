"""
Pydantic Schemas

Wire shapes for the Summary document, event queries and their results.
Field aliases are the camelCase names the dashboard reads.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config_loader import config


# ============================================================
# SUMMARY
# ============================================================

class TopEntry(BaseModel):
    """One row of a top-N frequency list."""

    key: str
    count: int = Field(..., ge=0)


class MinuteBucket(BaseModel):
    """Number of parsed events whose timestamp falls in one minute bucket."""

    bucket: str
    count: int = Field(..., ge=0)


class Summary(BaseModel):
    """Aggregate statistics computed for a LogFile by one completed job."""

    model_config = ConfigDict(populate_by_name=True)

    total_lines: int = Field(..., alias="totalLines", ge=0)
    sha256: str = Field(..., description="Hex SHA-256 over every line, terminators excluded")
    unique_ips: int = Field(..., alias="uniqueIps", ge=0)
    counts_by_status: Dict[str, int] = Field(default_factory=dict, alias="countsByStatus")
    top_ips: List[TopEntry] = Field(default_factory=list, alias="topIps")
    top_paths: List[TopEntry] = Field(default_factory=list, alias="topPaths")
    errors_over_time: List[MinuteBucket] = Field(default_factory=list, alias="errorsOverTime")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ============================================================
# EVENT QUERIES
# ============================================================

class EventQuery(BaseModel):
    """Filter and paging options for reading back the events of one LogFile."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(
        default_factory=lambda: config.get('query.default_limit', 100),
        gt=0
    )
    ip: Optional[str] = Field(default=None, description="Exact source address match")
    status: Optional[int] = Field(default=None, description="Exact status code match")
    time_from: Optional[str] = Field(default=None, description="Inclusive lower timestamp bound")
    time_to: Optional[str] = Field(default=None, description="Inclusive upper timestamp bound")
    descending: bool = False

    @classmethod
    def from_params(
        cls,
        page: int = 1,
        limit: Optional[int] = None,
        ip: Optional[str] = None,
        status: Optional[int] = None,
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
        sort: str = "eventTs"
    ) -> "EventQuery":
        """
        Build a query from request-style parameters.

        Empty strings count as "not given". A sort value starting with '-'
        requests descending timestamp order.
        """
        fields: Dict[str, Any] = {
            "page": page,
            "ip": ip or None,
            "status": status,
            "time_from": time_from or None,
            "time_to": time_to or None,
            "descending": str(sort or "").startswith("-"),
        }
        if limit is not None:
            fields["limit"] = limit
        return cls(**fields)


class EventPage(BaseModel):
    """
    One page of query results.

    total counts the filtered events among those fetched so far, which is
    less than the true total when filters exclude records never fetched.
    """

    page: int
    limit: int
    total: int
    items: List[Dict[str, Any]] = Field(default_factory=list)


class StartResult(BaseModel):
    """Immediate answer to an analysis request."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    status: str = "queued"

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
