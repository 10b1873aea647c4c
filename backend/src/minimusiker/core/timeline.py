"""Task templates and deadline/urgency arithmetic for the admin task board."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Union

from minimusiker.core.models.tasks import TaskCompletionType, TaskType

OVERDUE_BASE_SCORE = -1000


@dataclass(frozen=True)
class TaskTemplate:
    id: str
    type: TaskType
    name: str
    description: str
    timeline_offset: int  # Days relative to the event, negative = before
    completion_type: TaskCompletionType
    creates_go_id: bool
    creates_shipping: bool
    r2_file: Optional[Callable[[str], str]] = None


PAPER_ORDER_TEMPLATES: List[TaskTemplate] = [
    TaskTemplate(
        id="poster_letter",
        type=TaskType.PAPER_ORDER,
        name="Poster & Letter To School",
        description="Send poster and customized letter to school for event promotion",
        timeline_offset=-58,
        completion_type=TaskCompletionType.SUBMIT_ONLY,
        creates_go_id=True,
        creates_shipping=True,
        r2_file=lambda event_id: f"events/{event_id}/printables/poster.pdf",
    ),
    TaskTemplate(
        id="flyer1",
        type=TaskType.PAPER_ORDER,
        name="Order 'Flyer One' To School",
        description="Place Flyeralarm order for Flyer 1 - first wave of event materials",
        timeline_offset=-42,
        completion_type=TaskCompletionType.MONETARY,
        creates_go_id=True,
        creates_shipping=True,
        r2_file=lambda event_id: f"events/{event_id}/printables/flyers/flyer1.pdf",
    ),
    TaskTemplate(
        id="flyer2",
        type=TaskType.PAPER_ORDER,
        name="Order 'Flyer Two' To School",
        description="Place Flyeralarm order for Flyer 2 - second wave of event materials",
        timeline_offset=-22,
        completion_type=TaskCompletionType.MONETARY,
        creates_go_id=True,
        creates_shipping=True,
        r2_file=lambda event_id: f"events/{event_id}/printables/flyers/flyer2.pdf",
    ),
    TaskTemplate(
        id="flyer3",
        type=TaskType.PAPER_ORDER,
        name="Flyer Three",
        description="Place Flyeralarm order for Flyer 3 - final wave of event materials",
        timeline_offset=-14,
        completion_type=TaskCompletionType.MONETARY,
        creates_go_id=True,
        creates_shipping=True,
        r2_file=lambda event_id: f"events/{event_id}/printables/flyers/flyer3.pdf",
    ),
    TaskTemplate(
        id="minicard",
        type=TaskType.PAPER_ORDER,
        name="Minicard To Office",
        description="Order Minicards for post-event distribution to parents",
        timeline_offset=1,
        completion_type=TaskCompletionType.MONETARY,
        creates_go_id=False,
        creates_shipping=False,
        r2_file=lambda event_id: f"events/{event_id}/printables/minicards/minicard.pdf",
    ),
]

# Created when a paper order that ships is completed
SHIPPING_TEMPLATE = TaskTemplate(
    id="shipping",
    type=TaskType.SHIPPING,
    name="Ship Order To School",
    description="Confirm shipment of materials to school",
    timeline_offset=0,
    completion_type=TaskCompletionType.CHECKBOX,
    creates_go_id=False,
    creates_shipping=False,
)


def get_all_templates() -> List[TaskTemplate]:
    return list(PAPER_ORDER_TEMPLATES)


def get_template(template_id: str) -> Optional[TaskTemplate]:
    return next((t for t in get_all_templates() if t.id == template_id), None)


def calculate_deadline(event_date: date, timeline_offset: int) -> date:
    return event_date + timedelta(days=timeline_offset)


@dataclass(frozen=True)
class Urgency:
    urgency_score: int
    days_until_due: int
    is_overdue: bool


def _to_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def calculate_urgency(
    deadline: Union[date, datetime], today: Optional[date] = None
) -> Urgency:
    """Urgency for sorting, lower is more urgent.

    ``days_until_due`` is the whole-day difference between the deadline and
    today. Overdue tasks score ``-1000 + days_until_due`` so they sort above
    everything that is merely due soon.
    """
    today = today or date.today()
    days_until_due = (_to_date(deadline) - today).days
    is_overdue = days_until_due < 0
    score = OVERDUE_BASE_SCORE + days_until_due if is_overdue else days_until_due
    return Urgency(
        urgency_score=score, days_until_due=days_until_due, is_overdue=is_overdue
    )
