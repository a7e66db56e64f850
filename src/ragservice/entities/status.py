"""Status entities - service health snapshot returned by get_status."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class KnowledgeBaseStatus(BaseModel):
    """Document count and capacity of one open knowledge base."""

    name: str
    document_count: int = Field(..., ge=0)
    capacity: int = Field(..., ge=0)
    last_update: Optional[datetime] = None


class ServiceMetrics(BaseModel):
    """Aggregate search and cache metrics."""

    total_searches: int = 0
    avg_search_time_ms: float = 0.0
    cache_hit_rate: float = Field(default=0.0, description="Percent of cache lookups that hit")
    cache_hits: int = 0
    cache_misses: int = 0
    cache_size: int = 0
    cache_max_size: int = 0


class ServiceStatus(BaseModel):
    status: str = "healthy"
    knowledge_bases: list[KnowledgeBaseStatus] = Field(default_factory=list)
    metrics: ServiceMetrics = Field(default_factory=ServiceMetrics)
