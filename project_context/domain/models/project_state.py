from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum
from langchain_core.messages import BaseMessage, HumanMessage, AIMessage, SystemMessage


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccessType(str, Enum):
    """Kind of file access"""
    READ = "read"
    WRITE = "write"
    EDIT = "edit"


class AccessSource(str, Enum):
    """Who touched the file"""
    AGENT = "agent"
    USER = "user"


class MessageRole(str, Enum):
    """Conversation message roles"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ProjectFile(BaseModel):
    """A single file of a generated project"""
    path: str = Field(description="Path, unique within a project")
    content: str = Field(default="", description="Full file content")
    language: Optional[str] = Field(None, description="Language tag used for code fences")


class AccessRecord(BaseModel):
    """Most recent access to a path"""
    path: str
    timestamp: float = Field(description="Unix time of the access")
    type: AccessType
    source: AccessSource
    priority: int = Field(description="Derived relevance priority")


class Snapshot(BaseModel):
    """Point-in-time copy of a project's files"""
    id: str = Field(description="Snapshot identifier")
    project_id: str
    files: Dict[str, ProjectFile] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)
    description: str = ""

    def info(self) -> "SnapshotInfo":
        return SnapshotInfo(
            id=self.id,
            project_id=self.project_id,
            timestamp=self.timestamp,
            description=self.description,
            file_count=len(self.files)
        )


class SnapshotInfo(BaseModel):
    """Snapshot summary without file contents"""
    id: str
    project_id: str
    timestamp: datetime
    description: str
    file_count: int


class Message(BaseModel):
    """A conversation message"""
    role: MessageRole
    content: str
    timestamp: Optional[float] = None


class ContextStats(BaseModel):
    """Token accounting for an assembled context"""
    instruction_tokens: int = 0
    files_tokens: int = 0
    history_tokens: int = 0
    user_message_tokens: int = 0
    total_tokens: int = 0
    files_included: int = 0


class ContextBundle(BaseModel):
    """Ordered prompt messages plus their token accounting"""
    messages: List[Message] = Field(default_factory=list)
    stats: ContextStats = Field(default_factory=ContextStats)

    def to_langchain_messages(self) -> List[BaseMessage]:
        """Convert to langchain messages for the model client"""

        converted: List[BaseMessage] = []
        for message in self.messages:
            if message.role == MessageRole.SYSTEM:
                converted.append(SystemMessage(content=message.content))
            elif message.role == MessageRole.USER:
                converted.append(HumanMessage(content=message.content))
            else:
                converted.append(AIMessage(content=message.content))
        return converted

    def get_summary(self) -> Dict[str, Any]:
        return {
            "messages": len(self.messages),
            **self.stats.model_dump()
        }


class ValidationReport(BaseModel):
    """Result of validating an assembled context"""
    valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
