"""Admin task models."""

import json
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import field_validator

from minimusiker.core import fields as F
from minimusiker.core.records import TableModel, first_link, parse_airtable_date


class TaskType(str, Enum):
    PAPER_ORDER = "paper_order"
    CLOTHING_ORDER = "clothing_order"
    CD_MASTER = "cd_master"
    CD_PRODUCTION = "cd_production"
    SHIPPING = "shipping"


class TaskCompletionType(str, Enum):
    MONETARY = "monetary"
    CHECKBOX = "checkbox"
    SUBMIT_ONLY = "submit_only"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Task(TableModel):
    TABLE_ID = F.TASKS_TABLE_ID
    TABLE_NAME = "Tasks"
    FIELDS = F.TASKS_FIELDS

    task_id: Optional[str] = None
    template_id: str
    event: List[str] = []
    task_type: TaskType
    task_name: str = ""
    description: str = ""
    completion_type: TaskCompletionType
    timeline_offset: int = 0
    deadline: date
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[str] = None
    completed_by: Optional[str] = None
    completion_data: Optional[str] = None
    go_order: List[str] = []
    parent_task: List[str] = []
    created_at: Optional[str] = None

    @field_validator("deadline", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_airtable_date(value)

    @field_validator("task_id", mode="before")
    @classmethod
    def format_task_id(cls, value):
        if isinstance(value, (int, float)):
            return f"TSK-{int(value):04d}"
        return value

    @property
    def event_record_id(self) -> Optional[str]:
        return first_link(self.event)

    @property
    def completion(self) -> Dict[str, Any]:
        if not self.completion_data:
            return {}
        return json.loads(self.completion_data)
