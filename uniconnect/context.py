"""Service wiring: one AppContext per application instance"""
from dataclasses import dataclass
from typing import Optional

from uniconnect.database import Database
from uniconnect.identity import UserService
from uniconnect.messaging import MessageService
from uniconnect.moderation import NotificationService, ReportService
from uniconnect.projects import ProjectService, ProjectStore
from uniconnect.realtime import RoomManager
from uniconnect.trust import TrustLedger, TrustVotes


@dataclass
class AppContext:
    database: Database
    rooms: RoomManager
    ledger: TrustLedger
    votes: TrustVotes
    users: UserService
    store: ProjectStore
    projects: ProjectService
    messages: MessageService
    notifications: NotificationService
    reports: ReportService

    @classmethod
    def build(cls, database: Database, rooms: Optional[RoomManager] = None) -> "AppContext":
        rooms = rooms or RoomManager()
        ledger = TrustLedger(database)
        store = ProjectStore(database)
        users = UserService(database, ledger)
        notifications = NotificationService(database)
        return cls(
            database=database,
            rooms=rooms,
            ledger=ledger,
            votes=TrustVotes(database, store),
            users=users,
            store=store,
            projects=ProjectService(store, users, ledger),
            messages=MessageService(database, store, rooms),
            notifications=notifications,
            reports=ReportService(database, store, users, notifications),
        )

    def close(self) -> None:
        self.database.close()
