from pydantic import AfterValidator, BaseModel, HttpUrl, Field, TypeAdapter, ValidationError, field_validator
from typing import Annotated, List, Optional
from datetime import datetime

from app.models import ResourceType, ResourceStatus

_http_url = TypeAdapter(HttpUrl)


def check_http_url(value: str) -> str:
    """Reject anything that is not an http(s) URL, but keep the string as submitted."""
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise ValueError("url must be a valid http or https URL")
    return value


SubmittedUrl = Annotated[str, AfterValidator(check_http_url)]

# Tag Schemas
class TagBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)

class TagCreate(TagBase):
    pass

class TagResponse(TagBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True

class TagWithCount(BaseModel):
    id: int
    name: str
    resource_count: int

# Category Schemas
class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None

class CategoryCreate(CategoryBase):
    pass

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("name cannot be cleared")
        return value

class CategoryResponse(CategoryBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True

# Resource Schemas
class ResourceCreate(BaseModel):
    """
    Submission payload. There is deliberately no status field: every new
    submission starts out pending.
    """
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    url: Optional[SubmittedUrl] = None
    resource_type: ResourceType = ResourceType.LINK
    category_id: Optional[int] = Field(None, gt=0)
    submitted_by: Optional[str] = Field(None, max_length=100)
    tags: List[str] = []

class ResourceUpdate(BaseModel):
    """
    Partial update. Only fields present in ``model_fields_set`` are written;
    an explicit ``None`` clears a nullable column.
    """
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    url: Optional[SubmittedUrl] = None
    resource_type: Optional[ResourceType] = None
    category_id: Optional[int] = Field(None, gt=0)
    status: Optional[ResourceStatus] = None
    submitted_by: Optional[str] = Field(None, max_length=100)

    @field_validator("title", "resource_type", "status")
    @classmethod
    def required_column_not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be cleared")
        return value

    def changes(self) -> dict:
        """Column values for the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True, mode="json")

class ResourceEdit(ResourceUpdate):
    # None means "leave tags alone", [] means "remove all tags"
    tags: Optional[List[str]] = None

    def field_changes(self) -> ResourceUpdate:
        data = self.model_dump(exclude_unset=True, exclude={"tags"})
        return ResourceUpdate.model_validate(data)

class ResourceResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    url: Optional[str]
    resource_type: ResourceType
    category_id: Optional[int]
    category: Optional[CategoryResponse] = None
    status: ResourceStatus
    vote_score: int
    submitted_by: Optional[str]
    created_at: datetime
    approved_at: Optional[datetime]
    tags: List[TagResponse] = []

    class Config:
        from_attributes = True

    @property
    def tag_names(self) -> List[str]:
        return [tag.name for tag in self.tags]

class ListMeta(BaseModel):
    count: int
    limit: int
    offset: int

class ResourceListResponse(BaseModel):
    data: List[ResourceResponse]
    meta: ListMeta

class ModerationRequest(BaseModel):
    status: str

class VoteRequest(BaseModel):
    type: str

# Dashboard Schemas
class DashboardStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int
    categories: int
    tags: int

class RecentResource(BaseModel):
    id: int
    title: str
    resource_type: ResourceType
    status: ResourceStatus
    vote_score: int
    category_name: Optional[str]
    submitted_by: Optional[str]
    created_at: datetime

class DashboardSummary(BaseModel):
    stats: DashboardStats
    recent_resources: List[RecentResource]
