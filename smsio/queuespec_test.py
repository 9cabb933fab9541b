import pytest

from .queuespec import QueueSpec


def test_single_queue_parsing():
    spec = QueueSpec.parse("sms=10")
    assert spec.queues == ["sms"]
    assert spec.concurrency == 10


def test_multi_queue_parsing():
    spec = QueueSpec.parse("urgent,sms,bulk=5")
    assert spec.queues == ["urgent", "sms", "bulk"]
    assert spec.concurrency == 5


def test_bare_queue_defaults_to_one():
    spec = QueueSpec.parse("sms")
    assert spec.queues == ["sms"]
    assert spec.concurrency == 1


def test_whitespace_handling():
    spec = QueueSpec.parse("  urgent , sms  = 8 ")
    assert spec.queues == ["urgent", "sms"]
    assert spec.concurrency == 8


def test_str():
    assert str(QueueSpec(queues=["urgent", "sms"], concurrency=3)) == "urgent,sms=3"


def test_empty_spec_error():
    with pytest.raises(ValueError, match="Queue spec cannot be empty"):
        QueueSpec.parse("")


def test_blank_spec_error():
    with pytest.raises(ValueError, match="Queue spec cannot be empty"):
        QueueSpec.parse("   ")


def test_empty_concurrency_error():
    with pytest.raises(ValueError, match="Concurrency must be a positive integer"):
        QueueSpec.parse("sms=")


def test_invalid_concurrency_error():
    with pytest.raises(ValueError, match="Concurrency must be a positive integer"):
        QueueSpec.parse("sms=abc")


def test_zero_concurrency_error():
    with pytest.raises(ValueError, match="Concurrency must be a positive integer"):
        QueueSpec.parse("sms=0")


def test_negative_concurrency_error():
    with pytest.raises(ValueError, match="Concurrency must be a positive integer"):
        QueueSpec.parse("sms=-1")


def test_no_queue_names_error():
    with pytest.raises(ValueError, match="No valid queue names found"):
        QueueSpec.parse(" , =3")
