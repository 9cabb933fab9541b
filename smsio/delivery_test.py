from datetime import UTC
from datetime import datetime
from datetime import timedelta

import pytest
from structlog.testing import capture_logs

from .composer import Composer
from .composer import action
from .delivery import UnsafeScheduling
from .job import deserialize
from .message import Message
from .samples.notifier import Notifier
from .smsio import Smsio
from .templates import Catalog
from .transport import TransportFailure


class CountingCatalog(Catalog):
    def __init__(self):
        self.lookups = []

    def lookup(self, key, interpolations=None):
        self.lookups.append(key)
        return f"Welcome aboard, {interpolations['name']}!"


class Counted(Composer, defaults={"from_": "+15550000000"}):
    calls = 0

    @action
    def welcome(self, to, name):
        type(self).calls += 1
        self.sms(to=to, context={"name": name})


class Plain(Composer, defaults={"from_": "+15550000000"}):
    @action
    def ping(self, to):
        self.sms(to=to, body="ping")


@pytest.fixture
def counted():
    Counted.calls = 0
    return Counted


def test_new_handle_has_no_side_effects(smsio, broker, transport, counted):
    handle = counted.welcome("+15551234567", "Ada")

    assert not handle.processed
    assert counted.calls == 0
    assert transport.outbox == []
    assert broker.pending(queue="sms") == []


def test_handle_repr():
    handle = Notifier.welcome("+15551234567", name="Ada")
    assert repr(handle) == (
        "<DeliveryHandle Notifier.welcome('+15551234567', name='Ada') unprocessed>"
    )


def test_message_is_built_once(broker, transport, counted):
    catalog = CountingCatalog()
    with Smsio(broker=broker, transport=transport, templates=catalog).activate():
        handle = counted.welcome("+15551234567", "Ada")

        first = handle.message
        second = handle.message
        handle.deliver_now()

    assert first is second
    assert counted.calls == 1
    assert catalog.lookups == ["counted.welcome"]
    assert transport.outbox == [first]


def test_message_uses_default_template(smsio):
    message = Notifier.welcome("+15551234567", "Ada").message

    assert message == Message(
        to="+15551234567",
        from_="+15550000000",
        body="Welcome aboard, Ada!",
        callback="https://example.com/sms/status",
    )


def test_deliver_now_sends_through_transport(smsio, transport):
    handle = Notifier.welcome("+15551234567", "Ada")

    result = handle.deliver_now()

    assert handle.processed
    assert result is not None
    assert result.to == "+15551234567"
    assert transport.outbox == [handle.message]


def test_deliver_now_without_message(smsio, transport):
    with capture_logs() as logs:
        result = Notifier.opt_out_check("+15551234567", True).deliver_now()

    assert result is None
    assert transport.outbox == []
    assert "sms_not_composed" in [log["event"] for log in logs]


def test_deliver_now_honors_delivery_policy(smsio, transport):
    transport.perform_deliveries = False

    assert Notifier.welcome("+15551234567", "Ada").deliver_now() is None
    assert transport.outbox == []

    Notifier.welcome("+15551234567", "Ada").deliver_now_bypass_safety()
    assert len(transport.outbox) == 1


def test_delivery_failure_is_rescued(smsio, transport):
    transport.fail_with(TransportFailure("rejected"))

    with capture_logs() as logs:
        result = Notifier.welcome("+15551234567", "Ada").deliver_now()

    assert result is None
    assert "notifier_delivery_failed" in [log["event"] for log in logs]


def test_unrescued_failure_propagates(smsio, transport):
    transport.fail_with(TransportFailure("rejected"))

    with pytest.raises(TransportFailure):
        Plain.ping("+15551234567").deliver_now()


def test_deliver_later_enqueues_one_job(smsio, broker, transport, counted):
    job = counted.welcome("+15551234567", "Ada").deliver_later()

    [body] = broker.pending(queue="sms")
    enqueued = deserialize(body)
    assert enqueued.id == job.id
    assert enqueued.composer == Counted.composer_path
    assert enqueued.action == "welcome"
    assert enqueued.delivery == "deliver_now"
    assert enqueued.args == ("+15551234567", "Ada")
    assert enqueued.run_at is None
    assert counted.calls == 0
    assert transport.outbox == []


def test_deliver_later_after_message_access(smsio, broker):
    handle = Notifier.welcome("+15551234567", "Ada")
    handle.message

    with pytest.raises(UnsafeScheduling):
        handle.deliver_later()
    assert broker.pending(queue="sms") == []


def test_deliver_later_after_deliver_now(smsio, broker):
    handle = Notifier.welcome("+15551234567", "Ada")
    handle.deliver_now()

    with pytest.raises(UnsafeScheduling):
        handle.deliver_later_bypass_safety()
    assert broker.pending(queue="sms") == []


def test_deliver_later_bypass_safety(smsio, broker):
    job = Notifier.welcome("+15551234567", "Ada").deliver_later_bypass_safety()
    assert job.delivery == "deliver_now_bypass_safety"
    assert len(broker.pending(queue="sms")) == 1


def test_deliver_later_with_wait(smsio):
    before = datetime.now(UTC)
    job = Notifier.welcome("+15551234567", "Ada").deliver_later(wait=60)

    assert job.run_at is not None
    assert before + timedelta(seconds=60) <= job.run_at
    assert job.run_at <= datetime.now(UTC) + timedelta(seconds=60)


def test_deliver_later_with_wait_until(smsio):
    moment = datetime(2030, 1, 1, 12, tzinfo=UTC)
    job = Notifier.welcome("+15551234567", "Ada").deliver_later(wait_until=moment)
    assert job.run_at == moment


def test_deliver_later_rejects_both_waits(smsio, broker):
    with pytest.raises(ValueError, match="either wait or wait_until"):
        Notifier.welcome("+15551234567", "Ada").deliver_later(
            wait=10, wait_until=datetime.now(UTC)
        )
    assert broker.pending(queue="sms") == []


def test_deliver_later_queue_override(smsio, broker):
    Notifier.welcome("+15551234567", "Ada").deliver_later(queue="urgent")

    assert broker.pending(queue="sms") == []
    assert len(broker.pending(queue="urgent")) == 1


def test_composer_queue_attribute(smsio, broker):
    class Bulk(Notifier):
        queue = "bulk"

    job = Bulk.welcome("+15551234567", "Ada").deliver_later()

    assert job.queue == "bulk"
    assert len(broker.pending(queue="bulk")) == 1


def test_unserializable_arguments(smsio, broker):
    from .arguments import SerializationFailure

    with pytest.raises(SerializationFailure):
        Notifier.welcome("+15551234567", object()).deliver_later()
    assert broker.pending(queue="sms") == []


def test_message_requires_active_smsio():
    with pytest.raises(RuntimeError, match="No smsio instance is active"):
        Notifier.welcome("+15551234567", "Ada").message


def test_deliver_later_with_keyword_arguments_and_an_hour_delay(smsio, broker):
    before = datetime.now(UTC)
    handle = Notifier.welcome(to="+1555", name="Ada")

    job = handle.deliver_later(wait=timedelta(hours=1))

    assert not handle.processed
    [body] = broker.pending(queue="sms")
    enqueued = deserialize(body)
    assert (enqueued.composer, enqueued.action, enqueued.delivery) == (
        "smsio.samples.notifier.Notifier",
        "welcome",
        "deliver_now",
    )
    assert enqueued.args == ()
    assert enqueued.kwargs == {"to": "+1555", "name": "Ada"}
    assert enqueued.run_at == job.run_at
    assert job.run_at is not None
    assert job.run_at - before >= timedelta(hours=1)
