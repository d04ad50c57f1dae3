from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Literal
from datetime import datetime
import re
import uuid
from utils.dates import to_naive_local


class TeamMemberModel(BaseModel):
    user_id: str
    team_leader: Literal[0, 1] = 0  # 1 = leader


class TeamModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    project_id: str
    team_member: List[TeamMemberModel] = Field(default_factory=list)
    description: Optional[str] = None
    team_code: str
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("team_code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()


class ProjectModel(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    topic: str = Field(..., max_length=250)
    code: str = Field(..., max_length=50)
    description: Optional[str] = Field(default=None, max_length=2000)
    semester: str
    created_by: str
    supervisor_id: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("semester")
    @classmethod
    def check_semester(cls, v: str) -> str:
        # Fall2025, SPRING2026, summer2025 ...
        if not re.fullmatch(r"(fall|spring|summer)\d{4}", v.strip(), flags=re.IGNORECASE):
            raise ValueError("semester must look like Fall2025, Spring2025 or Summer2025")
        return v.strip()


class ProjectUpdateModel(BaseModel):
    topic: Optional[str] = Field(default=None, max_length=250)
    description: Optional[str] = Field(default=None, max_length=2000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def local_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_local(v)
