"""Core service layer modules."""

from .items import ItemService
from .projects import ProjectService
from .review import ReviewService
from .tasks import TaskService
from .transition import TransitionService

__all__ = ["ItemService", "ProjectService", "ReviewService", "TaskService", "TransitionService"]
