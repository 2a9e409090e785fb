"""Pydantic schemas for Query Service responses."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Entry(BaseModel):
    """A disease / autoantibody / autoantigen reference record."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field("", alias="_id")
    disease: str = ""
    autoantibody: str = ""
    autoantigen: str = ""
    epitope: Optional[str] = None
    uniprotId: Optional[str] = None
    type: Optional[str] = None
    additional: Optional[Dict[str, str]] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    def to_row(self) -> Dict[str, Any]:
        """Flatten for tabular output, additional fields prefixed with 'additional.'."""
        row = self.model_dump(by_alias=True, exclude={"additional"})
        for key, value in (self.additional or {}).items():
            row[f"additional.{key}"] = value
        return row


class Pagination(BaseModel):
    """Pagination metadata."""

    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0


class EntryPage(BaseModel):
    """Response for the entry list endpoint."""

    data: List[Entry] = []
    pagination: Pagination = Pagination()
    appliedFilters: Optional[Dict[str, Any]] = None


class EntryDetail(BaseModel):
    """A single entry plus entries sharing its disease or antigen."""

    data: Entry
    relatedEntries: List[Entry] = []


class UniqueValues(BaseModel):
    """Distinct values of one field."""

    field: Optional[str] = None
    data: List[str] = []


class SearchResult(BaseModel):
    """Free-text match list used to build suggestions."""

    data: List[Entry] = []
    count: int = 0


class Statistics(BaseModel):
    """Database statistics overview."""

    model_config = ConfigDict(extra="allow")

    overview: Dict[str, Any] = {}
    diseaseBreakdown: List[Dict[str, Any]] = []
    topAntibodies: List[Dict[str, Any]] = []
    topAntigens: List[Dict[str, Any]] = []


class User(BaseModel):
    """Console user account."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field("", alias="_id")
    name: str = ""
    username: str = ""
    email: str = ""
    role: str = ""
    contactNumber: Optional[str] = None
    isActive: bool = True
    consultationCharges: Optional[float] = None


class UserPage(BaseModel):
    """Response for the user list endpoints."""

    users: List[User] = []
    pagination: Pagination = Pagination()
