import io
from datetime import datetime

import pytest
from PIL import Image

from event_checkin.core.exceptions import DeliveryFailed, StoreUnavailable
from event_checkin.models.registration import MerchLine, Participant, RegistrationRecord
from event_checkin.services.control import SystemControl
from event_checkin.services.notifier import (
    DEFAULT_TEMPLATE,
    ConfirmationNotifier,
    FailLog,
    MemoryMailer,
    Mailer,
    build_confirmation_values,
    render_template,
)
from event_checkin.services.row_store import InMemoryRowStore
from event_checkin.utils.image import generate_qr_png

from conftest import FrozenClock


class BrokenMailer(Mailer):
    def send(self, to, subject, text, html=None, inline_images=None):
        raise ConnectionError("relay refused")


def _record():
    return RegistrationRecord(
        email="family@example.com",
        participants=(Participant("Grace", "Kim"), Participant("Joel", "Kim")),
        mobile="0400000000",
        merchandise=(MerchLine("M", "2"), MerchLine("L", "0"), MerchLine("S", "")),
        total_fee="45",
    )


def test_confirmation_values_for_new_registration():
    values = build_confirmation_values(_record(), "new")
    assert values["name"] == "Grace Kim"
    assert values["names"] == "Grace Kim<br>Joel Kim"
    assert values["new_display"] == "block"
    assert values["update_display"] == "none"
    assert values["tshirt1_size"] == "M"
    assert values["tshirt1_qty"] == "2"
    assert values["tshirt1_display"] == "block"
    assert values["tshirt2_display"] == "none"
    assert values["tshirt3_display"] == "none"
    assert values["tshirt4_display"] == "none"


def test_confirmation_values_for_update():
    values = build_confirmation_values(_record(), "update")
    assert values["new_display"] == "none"
    assert values["update_display"] == "block"


def test_render_template_leaves_unknown_placeholders():
    rendered = render_template("Hi {{ name }}, {{missing}}", {"name": "Grace"})
    assert rendered == "Hi Grace, {{ missing }}"


def test_values_are_escaped_in_html_but_not_in_text():
    record = RegistrationRecord(
        email="x@example.com",
        participants=(Participant("<a href='http://evil'>Click</a>", "{{total_fee}}"), Participant("Jo", "Kim")),
        total_fee="45",
    )
    values = build_confirmation_values(record, "new")

    html = render_template("<p>Dear {{name}}</p><p>{{names}}</p>", values)
    assert "<a href" not in html
    assert "&lt;a href=&#39;http://evil&#39;&gt;Click&lt;/a&gt;" in html
    # Values are not rendered a second time
    assert "45" not in html
    assert "{{total_fee}}<br>Jo Kim" in html

    text = render_template("Dear {{name}}", values, html=False)
    assert text == "Dear <a href='http://evil'>Click</a> {{total_fee}}"


def test_broken_sheet_template_falls_back_to_default():
    store = InMemoryRowStore({"Template": [["Subject", "<p>{% if %}</p>"]]})
    mailer = MemoryMailer()
    notifier = ConfirmationNotifier(mailer, store, "Template")
    notifier.send_confirmation("family@example.com", build_confirmation_values(_record(), "new"), b"png")
    assert "Dear Grace Kim" in mailer.sent[-1].html


def test_confirmation_uses_default_template_with_inline_qr():
    mailer = MemoryMailer()
    notifier = ConfirmationNotifier(mailer, InMemoryRowStore(), "Template")
    png = generate_qr_png("token")

    notifier.send_confirmation("family@example.com", build_confirmation_values(_record(), "new"), png)

    message = mailer.last_to("family@example.com")
    assert message.subject == DEFAULT_TEMPLATE[0]
    assert "Dear Grace Kim" in message.html
    assert 'src="cid:qrcode"' in message.html
    assert "{{" not in message.html
    filename, content, mimetype, cid = message.inline_images[0]
    assert (filename, mimetype, cid) == ("qrcode.png", "image/png", "qrcode")
    assert content == png
    assert "<p>" not in message.text


def test_template_sheet_overrides_default():
    store = InMemoryRowStore({"Template": [["Welcome {{name}}", "<p>Mode {{mode}}</p>"]]})
    mailer = MemoryMailer()
    notifier = ConfirmationNotifier(mailer, store, "Template")

    notifier.send_confirmation("family@example.com", build_confirmation_values(_record(), "update"), b"png")

    message = mailer.sent[-1]
    assert message.subject == "Welcome Grace Kim"
    assert message.html == "<p>Mode update</p>"


def test_configured_subject_wins():
    store = InMemoryRowStore({"Template": [["Sheet subject", "<p>x</p>"]]})
    mailer = MemoryMailer()
    notifier = ConfirmationNotifier(mailer, store, "Template", confirmation_subject="Fixed")
    notifier.send_confirmation("a@x.com", {}, b"png")
    assert mailer.sent[-1].subject == "Fixed"


def test_otp_message_text():
    mailer = MemoryMailer()
    ConfirmationNotifier(mailer, InMemoryRowStore(), "Template").send_otp("a@x.com", 123456)
    message = mailer.last_to("a@x.com")
    assert message.subject == "Your OTP Code"
    assert message.text == "Your OTP code is 123456."


def test_transport_errors_become_delivery_failed():
    notifier = ConfirmationNotifier(BrokenMailer(), InMemoryRowStore(), "Template")
    with pytest.raises(DeliveryFailed):
        notifier.send_otp("a@x.com", 123456)
    with pytest.raises(DeliveryFailed) as exc:
        notifier.send_confirmation("a@x.com", {}, b"png")
    assert "relay refused" in exc.value.details["cause"]


def test_fail_log_appends_row():
    store = InMemoryRowStore()
    log = FailLog(store, "FailLog", now=FrozenClock(datetime(2026, 10, 19, 8, 0, 0)))
    log.record("a@x.com", "relay refused")
    assert store.read_all("FailLog") == [["a@x.com", "2026-10-19 08:00:00", "relay refused"]]


def test_fail_log_write_failure_is_contained():
    store = InMemoryRowStore()

    def failing_append(sheet, values):
        raise StoreUnavailable("append_row")

    store.append_row = failing_append
    FailLog(store, "FailLog").record("a@x.com", "relay refused")


def test_qr_png_is_a_square_image():
    png = generate_qr_png("00" * 16 + ":" + "ab" * 32)
    with Image.open(io.BytesIO(png)) as image:
        assert image.format == "PNG"
        width, height = image.size
    assert width == height
    assert width > 0


@pytest.mark.parametrize(
    "rows, expected",
    [
        ([["SystemOpen", "Y"]], True),
        ([["other", "y"], [" systemopen ", "Open"]], True),
        ([["SystemOpen", "N"]], False),
        ([["SystemOpen"]], False),
        ([], False),
    ],
)
def test_system_control_flag(rows, expected):
    control = SystemControl(InMemoryRowStore({"Control": rows}), "Control", "SystemOpen")
    assert control.is_registration_open() is expected
