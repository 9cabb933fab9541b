from dataclasses import dataclass
from typing import Self


@dataclass
class QueueSpec:
    """Which queues a worker takes delivery jobs from, and how many at once.

    How the queues share the concurrency is up to the broker; jobs are
    usually taken round-robin between them.
    """

    queues: list[str]
    concurrency: int

    def __str__(self):
        return f"{','.join(self.queues)}={self.concurrency}"

    @classmethod
    def parse(cls, value: str) -> Self:
        """Parse a queue spec string.

        | queuespec          | queues               | concurrency      |
        +--------------------+----------------------+------------------+
        | sms                | ['sms']              | 1                |
        | sms=5              | ['sms']              | 5                |
        | urgent,sms=10      | ['urgent', 'sms']    | 10               |
        """

        if not value or not value.strip():
            raise ValueError("Queue spec cannot be empty")

        # Left split so that = is never part of a queue name
        raw_queues, separator, raw_concurrency = value.partition("=")

        concurrency = 1
        if separator:
            try:
                concurrency = int(raw_concurrency)
            except ValueError:
                concurrency = 0
            if concurrency <= 0:
                raise ValueError(
                    f"Concurrency must be a positive integer, "
                    f"got: '{raw_concurrency}' in '{value}'"
                )

        queues = [q.strip() for q in raw_queues.split(",") if q.strip()]
        if not queues:
            raise ValueError(f"No valid queue names found in '{value}'")

        return cls(queues=queues, concurrency=concurrency)
