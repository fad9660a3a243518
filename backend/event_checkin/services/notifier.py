"""
Outbound email: OTP messages, registration confirmations with the check-in
QR code inline, and the fail log for confirmations that could not be sent.
"""

import logging
import smtplib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Callable, Dict, List, Optional, Tuple

from jinja2 import DebugUndefined, Environment, TemplateError
from markupsafe import Markup

from event_checkin.core.exceptions import CheckinServiceError, DeliveryFailed
from event_checkin.models.registration import TIMESTAMP_FORMAT, RegistrationRecord
from event_checkin.services.row_store import RowStore

logger = logging.getLogger(__name__)

QR_CONTENT_ID = "qrcode"

# (filename, content, mimetype, content id)
InlineImage = Tuple[str, bytes, str, str]

DEFAULT_TEMPLATE = (
    "Registration confirmation",
    """<html><body>
<p>Dear {{name}},</p>
<p style="display: {{new_display}}">Thank you for registering. We look forward to seeing you!</p>
<p style="display: {{update_display}}">Your registration has been updated.</p>
<p>Registered participants:<br>{{names}}</p>
<div style="display: {{tshirt1_display}}">T-shirt: {{tshirt1_size}} x {{tshirt1_qty}}</div>
<div style="display: {{tshirt2_display}}">T-shirt: {{tshirt2_size}} x {{tshirt2_qty}}</div>
<div style="display: {{tshirt3_display}}">T-shirt: {{tshirt3_size}} x {{tshirt3_qty}}</div>
<div style="display: {{tshirt4_display}}">T-shirt: {{tshirt4_size}} x {{tshirt4_qty}}</div>
<p>Total fee: {{total_fee}}</p>
<p>Please present this QR code at check-in:</p>
<img src="cid:qrcode" alt="Check-in QR code">
</body></html>""",
)

DEFAULT_TEXT = """Dear {{name}},

Your registration is confirmed ({{mode}}).
Registered participants: {{participants}}
Total fee: {{total_fee}}

Please present the QR code in this email at check-in."""

# Unknown placeholders render back as themselves
_html_env = Environment(autoescape=True, undefined=DebugUndefined)
_text_env = Environment(autoescape=False, undefined=DebugUndefined)


def _display(flag: bool) -> str:
    return "block" if flag else "none"


def build_confirmation_values(record: RegistrationRecord, mode: str) -> Dict[str, str]:
    """Template substitutions for a confirmation email"""
    values = {
        "name": record.display_name,
        # Joined as markup so the separator survives autoescaping; each name is escaped
        "names": Markup("<br>").join(p.full_name for p in record.named_participants()),
        "participants": ", ".join(p.full_name for p in record.named_participants()),
        "email": record.email,
        "mobile": record.mobile,
        "total_fee": record.total_fee,
        "mode": mode,
        "new_display": _display(mode == "new"),
        "update_display": _display(mode == "update"),
    }
    for i, line in enumerate(record.merchandise, start=1):
        values[f"tshirt{i}_size"] = line.size
        values[f"tshirt{i}_qty"] = line.quantity
        values[f"tshirt{i}_display"] = _display(line.is_ordered())
    return values


def render_template(template: str, values: Dict[str, str], html: bool = True) -> str:
    """
    Render a {{key}} template with Jinja2. HTML templates autoescape every
    value; unknown placeholders are left in the output.
    """
    env = _html_env if html else _text_env
    return env.from_string(template).render(**values)


# ==============================================================================
# Mail transports
# ==============================================================================


class Mailer(ABC):
    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        inline_images: Optional[List[InlineImage]] = None,
    ) -> None:
        """Deliver one message; raises on transport failure"""


class SmtpMailer(Mailer):
    def __init__(self, host: str, port: int, user: Optional[str], password: Optional[str], sender: str):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender

    def _build(self, to, subject, text, html, inline_images):
        if not html:
            msg = MIMEText(text, "plain")
        else:
            # Related container so images can be referenced by cid
            msg = MIMEMultipart("related")
            alt = MIMEMultipart("alternative")
            msg.attach(alt)
            alt.attach(MIMEText(text, "plain"))
            alt.attach(MIMEText(html, "html"))
            for filename, content, mimetype, cid in inline_images or []:
                img = MIMEImage(content, _subtype=mimetype.split("/")[-1])
                img.add_header("Content-ID", f"<{cid}>")
                img.add_header("Content-Disposition", "inline", filename=filename)
                msg.attach(img)
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        return msg

    def send(self, to, subject, text, html=None, inline_images=None):
        msg = self._build(to, subject, text, html, inline_images)
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            server.starttls()
            if self.user and self.password:
                server.login(self.user, self.password)
            server.send_message(msg)


@dataclass
class SentMessage:
    to: str
    subject: str
    text: str
    html: Optional[str] = None
    inline_images: List[InlineImage] = field(default_factory=list)


class MemoryMailer(Mailer):
    """Keeps messages instead of sending them (development and tests)"""

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: List[SentMessage] = []

    def send(self, to, subject, text, html=None, inline_images=None):
        with self._lock:
            self.sent.append(SentMessage(to, subject, text, html, list(inline_images or [])))
        logger.info(f"[DEV] Kept email to {to}: {subject}")

    def last_to(self, to: str) -> Optional[SentMessage]:
        with self._lock:
            for message in reversed(self.sent):
                if message.to == to:
                    return message
        return None


# ==============================================================================
# Fail log
# ==============================================================================


class FailLog:
    """Appends [email, timestamp, error] rows for undelivered confirmations"""

    def __init__(self, store: RowStore, sheet: str, now: Callable[[], datetime] = datetime.now):
        self.store = store
        self.sheet = sheet
        self.now = now

    def record(self, email: str, error: str) -> None:
        row = [email, self.now().strftime(TIMESTAMP_FORMAT), error]
        try:
            self.store.append_row(self.sheet, row)
        except CheckinServiceError as e:
            logger.error(f"❌ Could not write fail log for {email} ({error}): {e.message}")
            return
        logger.warning(f"Recorded delivery failure for {email}: {error}")


# ==============================================================================
# Notifier
# ==============================================================================


class ConfirmationNotifier:
    def __init__(
        self,
        mailer: Mailer,
        store: RowStore,
        template_sheet: str,
        otp_subject: str = "Your OTP Code",
        confirmation_subject: Optional[str] = None,
    ):
        self.mailer = mailer
        self.store = store
        self.template_sheet = template_sheet
        self.otp_subject = otp_subject
        self.confirmation_subject = confirmation_subject

    def send_otp(self, email: str, code: int) -> None:
        try:
            self.mailer.send(email, self.otp_subject, f"Your OTP code is {code}.")
        except Exception as e:
            raise DeliveryFailed(email, e) from e

    def load_template(self) -> Tuple[str, str]:
        """(subject, html) from the template sheet, else the built-in one"""
        rows = self.store.read_all(self.template_sheet)
        if rows and len(rows[0]) >= 2 and rows[0][1].strip():
            subject = rows[0][0].strip() or DEFAULT_TEMPLATE[0]
            return subject, rows[0][1]
        return DEFAULT_TEMPLATE

    def send_confirmation(self, email: str, values: Dict[str, str], qr_png: bytes) -> None:
        try:
            subject, html_template = self.load_template()
            if self.confirmation_subject:
                subject = self.confirmation_subject
            try:
                html = render_template(html_template, values)
            except TemplateError as e:
                logger.error(f"Template rendering error, using built-in template: {e}")
                html = render_template(DEFAULT_TEMPLATE[1], values)
            self.mailer.send(
                email,
                render_template(subject, values, html=False),
                render_template(DEFAULT_TEXT, values, html=False),
                html=html,
                inline_images=[("qrcode.png", qr_png, "image/png", QR_CONTENT_ID)],
            )
        except DeliveryFailed:
            raise
        except Exception as e:
            raise DeliveryFailed(email, e) from e
        logger.info(f"✅ Confirmation sent to {email} ({values.get('mode')})")
