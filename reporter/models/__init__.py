from reporter.models.base import Base
from reporter.models.delivery_log import DeliveryLog
from reporter.models.job_run import JobRun
from reporter.models.profile import DataSourceProfile
from reporter.models.task import Recurrence, ScheduledTask, TaskStatus
from reporter.models.template import ReportTemplate
from reporter.models.user import User

__all__ = [
    "Base",
    "User",
    "DataSourceProfile",
    "ReportTemplate",
    "ScheduledTask",
    "TaskStatus",
    "Recurrence",
    "DeliveryLog",
    "JobRun",
]
