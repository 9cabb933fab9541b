import subprocess
import sys
from time import monotonic
from time import sleep

import pytest

from smsio.stub.transport import StubTransport

from .notifier import Notifier


def test_welcome_uses_the_sample_templates(smsio):
    message = Notifier.welcome("+15551234567", "Ada").message

    assert message is not None
    assert message.body == "Welcome aboard, Ada!"
    assert message.from_ == "+15550000000"
    assert message.callback == "https://example.com/sms/status"


def test_urgent_reminder_has_an_explicit_body(smsio):
    message = Notifier.reminder("+15551234567", "today", urgent=True).message

    assert message is not None
    assert message.body == "Urgent: your appointment is today."


def test_opted_out_numbers_get_no_message(smsio, transport):
    handle = Notifier.opt_out_check("+15551234567", True)

    assert handle.message is None
    assert handle.deliver_now() is None
    assert transport.outbox == []


def test_rescued_failure_is_not_raised(smsio, transport: StubTransport):
    transport.fail_with(ConnectionError("network down"))
    assert Notifier.welcome("+15551234567", "Ada").deliver_now() is None


@pytest.mark.timeout(10)
def test_worker_process_starts_and_stops():
    proc = subprocess.Popen(
        [sys.executable, "-m", "smsio", "worker", "sms=1"],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    try:
        deadline = monotonic() + 1
        while monotonic() < deadline and proc.poll() is None:
            sleep(0.05)
        assert proc.poll() is None
    finally:
        if proc.poll() is None:
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
