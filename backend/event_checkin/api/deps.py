import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from event_checkin.core.config import Settings
from event_checkin.core.locks import KeyedLock
from event_checkin.db.base import Base
from event_checkin.db.session import build_engine, build_session_factory
from event_checkin.services.checkin import CheckinCoordinator
from event_checkin.services.control import SystemControl
from event_checkin.services.notifier import (
    ConfirmationNotifier,
    FailLog,
    Mailer,
    MemoryMailer,
    SmtpMailer,
)
from event_checkin.services.otp_ledger import OtpLedger
from event_checkin.services.registration import RegistrationService
from event_checkin.services.row_store import InMemoryRowStore, RowStore, SqlRowStore
from event_checkin.services.token_codec import TokenCodec

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: RowStore
    mailer: Mailer
    notifier: ConfirmationNotifier
    fail_log: FailLog
    otp: OtpLedger
    registrations: RegistrationService
    control: SystemControl
    codec: TokenCodec
    checkin: CheckinCoordinator


def build_store(settings: Settings) -> RowStore:
    if settings.STORE_BACKEND == "memory":
        logger.warning("⚠️ Using in-memory row store; data is lost on restart")
        return InMemoryRowStore()
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    return SqlRowStore(build_session_factory(engine))


def build_mailer(settings: Settings) -> Mailer:
    if not settings.SMTP_HOST:
        logger.warning("⚠️ SMTP_HOST not set; emails are kept in memory")
        return MemoryMailer()
    return SmtpMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        user=settings.SMTP_USER,
        password=settings.SMTP_PASSWORD,
        sender=settings.MAIL_FROM,
    )


def build_services(
    settings: Settings,
    store: Optional[RowStore] = None,
    mailer: Optional[Mailer] = None,
) -> Services:
    """Wire the collaborators; store and mailer may be injected"""
    store = store or build_store(settings)
    mailer = mailer or build_mailer(settings)

    notifier = ConfirmationNotifier(
        mailer,
        store,
        settings.TEMPLATE_SHEET,
        otp_subject=settings.OTP_SUBJECT,
        confirmation_subject=settings.CONFIRMATION_SUBJECT,
    )
    registrations = RegistrationService(store, settings.REGISTRATION_SHEET, locks=KeyedLock())
    codec = TokenCodec(settings.TOKEN_SECRET)

    return Services(
        settings=settings,
        store=store,
        mailer=mailer,
        notifier=notifier,
        fail_log=FailLog(store, settings.FAILLOG_SHEET),
        otp=OtpLedger(notifier.send_otp, ttl_seconds=settings.OTP_TTL_SECONDS),
        registrations=registrations,
        control=SystemControl(store, settings.CONTROL_SHEET, settings.CONTROL_KEYWORD),
        codec=codec,
        checkin=CheckinCoordinator(registrations, codec, settings.STAFF_PASSWORD),
    )


def get_services(request: Request) -> Services:
    """Dependency for the wired services of the running app"""
    return request.app.state.services
