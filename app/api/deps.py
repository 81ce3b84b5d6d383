"""
Dependencies de FastAPI para los colaboradores construidos en create_app.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import get_db
from app.services.claim_lifecycle import ClaimLifecycle
from app.services.claim_repository import ClaimRepository
from app.services.notifications import NotificationDispatcher, NotificationWorker
from app.services.user_service import UserService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_claim_repository(request: Request) -> ClaimRepository:
    return request.app.state.claim_repository


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_notification_worker(request: Request) -> NotificationWorker:
    return request.app.state.notification_worker


def get_lifecycle(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    worker: NotificationWorker = Depends(get_notification_worker),
) -> ClaimLifecycle:
    return ClaimLifecycle(db, dispatcher=dispatcher, worker=worker)


def get_user_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> UserService:
    return UserService(db, settings)
