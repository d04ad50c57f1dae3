# Global Constants
from enum import Enum


class Role(str, Enum):
    ADMIN_DEVELOPER = "admin_developer"
    ADMIN = "admin"
    STUDENT = "student"
    STUDENT_LEADER = "student_leader"
    SUPERVISOR = "supervisor"  # lecturer / mentor

ADMIN_ROLES = (Role.ADMIN_DEVELOPER, Role.ADMIN)


class ProjectAction(str, Enum):
    READ = "read"
    WRITE = "write"
    UPDATE = "update"
    DELETE = "delete"


class TaskStatus:
    TODO = "To Do"
    DOING = "Doing"
    DONE = "Done"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

# Tasks in these states never get deadline reminders
TERMINAL_TASK_STATUSES = [TaskStatus.COMPLETED, TaskStatus.DONE, TaskStatus.CANCELLED]


class NotificationType:
    SYSTEM = "System"
    PROJECT = "Project"
    DOCUMENT = "Document"
    MEETING = "Meeting"
    TASK = "Task"
    DEFECT = "Defect"
    TEAM = "Team"
    OTHER = "Other"


class NotificationAction:
    CREATE = "create"
    UPDATE = "update"
    ASSIGN = "assign"
    STATUS_CHANGE = "status_change"
    DEADLINE_APPROACHING = "deadline_approaching"
    DEADLINE_PASSED = "deadline_passed"


class NotificationPriority:
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class NotificationStatus:
    UNREAD = "Unread"
    READ = "Read"


class RealtimeEvents:
    NOTIFICATION = "notification"
    NOTIFICATION_READ = "notification-read"
