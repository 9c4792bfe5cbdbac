"""Member reports filed by project owners, resolved by admins, plus notifications"""
from typing import TYPE_CHECKING, List, Optional

from pymongo import ASCENDING, DESCENDING

from uniconnect import policy
from uniconnect.database import NOTIFICATIONS, REPORTS, Database, oid, utcnow
from uniconnect.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from uniconnect.identity import UserService
from uniconnect.logging_config import logger
from uniconnect.schemas import Notification, Report, User

if TYPE_CHECKING:
    from uniconnect.projects import ProjectStore


class NotificationService:
    def __init__(self, database: Database):
        self.database = database

    def notify(self, user_id: str, type: str, message: str, report_id: Optional[str] = None) -> Notification:
        notification = Notification(user=user_id, type=type, message=message, report=report_id)
        notification.id = self.database.create_document(NOTIFICATIONS, notification.to_document())
        return notification

    def list_for(self, user_id: str) -> List[Notification]:
        docs = self.database.get_documents(
            NOTIFICATIONS, {"user": user_id}, sort=[("createdAt", DESCENDING), ("_id", DESCENDING)]
        )
        return [Notification.from_document(d) for d in docs]

    def mark_read(self, user_id: str, notification_id: str) -> Notification:
        query = {"_id": oid(notification_id), "user": user_id}
        result = self.database.notifications.update_one(query, {"$set": {"read": True, "updatedAt": utcnow()}})
        if result.matched_count == 0:
            raise NotFoundError("Notification", notification_id)
        return Notification.from_document(self.database.notifications.find_one(query))


class ReportService:
    def __init__(
        self,
        database: Database,
        projects: "ProjectStore",
        users: UserService,
        notifications: NotificationService,
    ):
        self.database = database
        self.projects = projects
        self.users = users
        self.notifications = notifications

    def get(self, report_id: str) -> Report:
        doc = self.database.reports.find_one({"_id": oid(report_id)})
        if doc is None:
            raise NotFoundError("Report", report_id)
        return Report.from_document(doc)

    def file_report(self, project_id: str, reporter_id: str, reported_user_id: str, reason: str) -> Report:
        project = self.projects.get(project_id)
        if not policy.is_owner(project, reporter_id):
            raise ForbiddenError("Access denied. Project owner privileges required.", hint="requires_owner")
        if reported_user_id == reporter_id:
            raise ValidationError("You cannot report yourself", field="userId")
        if not policy.is_member(project, reported_user_id):
            raise ValidationError("User is not a member of this project", field="userId")

        report = Report(
            reportedUser=reported_user_id,
            reportedBy=reporter_id,
            project=project.id,
            reason=reason,
        )
        report.id = self.database.create_document(REPORTS, report.to_document())

        reported_name = self._display_name(reported_user_id)
        self.notifications.notify(
            reporter_id,
            "report_submitted",
            f'You reported user {reported_name} in project "{project.title}".',
            report_id=report.id,
        )
        logger.info(f"Report {report.id} filed against {reported_user_id} in project {project.id}")
        return self.get(report.id)

    def list_reports(self) -> List[Report]:
        """Open reports first, newest first within each status"""
        docs = self.database.get_documents(
            REPORTS, sort=[("status", ASCENDING), ("createdAt", DESCENDING), ("_id", DESCENDING)]
        )
        return [Report.from_document(d) for d in docs]

    def resolve(self, report_id: str, admin: User, admin_note: str = "") -> Report:
        if not admin.is_admin:
            raise ForbiddenError("Access denied. Admin privileges required.", hint="requires_admin")
        report = self.get(report_id)
        if report.status == 'resolved':
            raise ConflictError("Report has already been resolved")
        project = self.projects.get(report.project, include_deleted=True)

        now = utcnow()
        self.database.reports.update_one(
            {"_id": oid(report_id)},
            {"$set": {
                "status": "resolved",
                "adminNote": admin_note,
                "resolvedBy": admin.id,
                "resolvedAt": now,
                "updatedAt": now,
            }},
        )

        self.notifications.notify(
            report.reportedBy,
            "report_resolved",
            f'Your report on user {self._display_name(report.reportedUser)} in project '
            f'"{project.title}" has been resolved by admin.',
            report_id=report_id,
        )
        logger.info(f"Report {report_id} resolved by admin {admin.id}")
        return self.get(report_id)

    def _display_name(self, user_id: str) -> str:
        try:
            return self.users.get(user_id).name
        except NotFoundError:
            return user_id
