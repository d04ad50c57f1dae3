from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, Literal
from datetime import datetime
import uuid
from utils.dates import to_naive_local


class FeatureModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    project_id: str
    priority: Literal['Low', 'Medium', 'High', 'Critical'] = 'Medium'
    status: Literal['To Do', 'Doing', 'Done'] = 'To Do'
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)


class FunctionModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    feature_id: str
    priority: Literal['Low', 'Medium', 'High', 'Critical'] = 'Medium'
    status: Literal['To Do', 'Doing', 'Done'] = 'To Do'
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)


class TaskModel(BaseModel):
    # Core Fields
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    description: Optional[str] = None

    # Relations: task -> function -> feature -> project
    function_id: Optional[str] = None

    # State
    status: Literal['To Do', 'Doing', 'Done', 'Cancelled'] = 'To Do'
    priority: Literal['Low', 'Medium', 'High', 'Critical'] = 'Medium'

    # Assignment
    assigner_id: Optional[str] = None # user_id (Set by backend)
    assignee_id: Optional[str] = None # user_id

    # Timing
    start_date: Optional[datetime] = None
    deadline: datetime

    @field_validator("start_date", "deadline")
    @classmethod
    def local_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True
    )


class TaskCreateModel(BaseModel):
    """Payload for POST /api/tasks. project_id is what the access guard checks."""
    project_id: str
    function_id: str
    title: str
    description: Optional[str] = None
    priority: Literal['Low', 'Medium', 'High', 'Critical'] = 'Medium'
    assignee_id: Optional[str] = None
    start_date: Optional[datetime] = None
    deadline: datetime


class TaskUpdateModel(BaseModel):
    title: Optional[str] = None
    status: Optional[Literal['To Do', 'Doing', 'Done', 'Cancelled']] = None
    priority: Optional[Literal['Low', 'Medium', 'High', 'Critical']] = None
    assignee_id: Optional[str] = None
    deadline: Optional[datetime] = None

    @field_validator("deadline")
    @classmethod
    def local_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)
