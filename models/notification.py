from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal, Dict, Any
from datetime import datetime
import uuid


NotificationTypeLiteral = Literal['System', 'Project', 'Document', 'Meeting', 'Task', 'Defect', 'Team', 'Other']
NotificationActionLiteral = Literal[
    'upload', 'update', 'delete', 'create',
    'assign', 'comment', 'status_change',
    'deadline_approaching', 'deadline_passed',
    'invite', 'remove', 'approve', 'reject'
]
NotificationPriorityLiteral = Literal['Low', 'Medium', 'High', 'Urgent']


class NotificationModel(BaseModel):
    """In-app notification for project, task and deadline events."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str  # Who receives the notification
    type: NotificationTypeLiteral = 'System'
    action: Optional[NotificationActionLiteral] = None

    # Content
    message: str = Field(..., min_length=1, max_length=500)
    priority: NotificationPriorityLiteral = 'Medium'

    # Related entities
    project_id: Optional[str] = None
    document_id: Optional[str] = None
    task_id: Optional[str] = None
    meeting_id: Optional[str] = None

    created_by: Optional[str] = None  # user_id of whoever triggered it
    action_url: Optional[str] = None  # Where the frontend navigates on click
    metadata: Dict[str, Any] = Field(default_factory=dict)

    # State
    status: Literal['Unread', 'Read'] = 'Unread'
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)
