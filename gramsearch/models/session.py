"""Connection session records stored alongside the search index."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SessionMetadata(BaseModel):
    """Opaque session record kept for the connection layer."""

    id: str = Field(..., description="Session identifier")
    user_id: Optional[str] = Field(None, description="Owning user")
    tab_id: Optional[str] = Field(None, description="Browser tab identifier")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    ip: Optional[str] = Field(None, description="Client address")
    connected_at: datetime = Field(default_factory=datetime.utcnow, description="Connection time")
    last_seen_at: datetime = Field(default_factory=datetime.utcnow, description="Last activity time")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Free-form session data")
