from .catalog import Category, Product
from .section import HomepageSection, SectionStatus, SectionType
from .section_associations import SectionCategory, SectionProduct
from .section_schedule import ScheduleStatus, SectionSchedule
from .section_version import SectionVersion

__all__ = [
    "Category",
    "HomepageSection",
    "Product",
    "ScheduleStatus",
    "SectionCategory",
    "SectionProduct",
    "SectionSchedule",
    "SectionStatus",
    "SectionType",
    "SectionVersion",
]
