import structlog

from smsio import Composer
from smsio import action
from smsio import activate
from smsio import rescue_from
from smsio.transport import TransportFailure

logger = structlog.get_logger()


class Notifier(
    Composer,
    defaults={
        "from_": "+15550000000",
        "callback": "https://example.com/sms/status",
    },
):
    @action
    def welcome(self, to: str, name: str):
        self.sms(to=to, context={"name": name})

    @action
    def reminder(self, to: str, appointment: str, *, urgent: bool = False):
        if urgent:
            self.sms(to=to, body=f"Urgent: your appointment is {appointment}.")
        else:
            self.sms(to=to, context={"appointment": appointment})

    @action
    def opt_out_check(self, to: str, opted_out: bool):
        # Opted out numbers get no message at all
        if not opted_out:
            self.sms(to=to, body="Reply STOP to unsubscribe.")

    @rescue_from(TransportFailure)
    def log_failure(self, exception):
        logger.warning("notifier_delivery_failed", error=str(exception))


if __name__ == "__main__":
    with activate():
        Notifier.welcome("+15551234567", "Ada").deliver_later()
