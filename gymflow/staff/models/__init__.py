from gymflow.core.database import Base
from .class_templates import ClassTemplate
from .classes import ScheduledClass

__all__ = [
    "Base",
    "ClassTemplate",
    "ScheduledClass",
]
