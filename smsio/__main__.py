from typing import Annotated

from typer import Argument
from typer import Typer

from .queuespec import QueueSpec
from .smsio import Smsio
from .worker import Worker

app = Typer()


@app.command()
def composers():
    """Show all registered composers and their actions."""
    smsio = Smsio()
    try:
        composers = smsio.composers()

        if not composers:
            print("No composers registered.")
            return

        paths = [composer.composer_path for composer in composers]
        actions = [", ".join(composer.actions) or "-" for composer in composers]
        path_width = max(len("Composer"), max(len(path) for path in paths))
        actions_width = max(len("Actions"), max(len(names) for names in actions))

        print(f"{'Composer':<{path_width}} | {'Actions':<{actions_width}}")
        print(f"{'-' * path_width}-+-{'-' * actions_width}")
        for path, names in zip(paths, actions, strict=True):
            print(f"{path:<{path_width}} | {names:<{actions_width}}")
    finally:
        smsio.shutdown()


@app.command()
def worker(
    queuespec: Annotated[
        QueueSpec,
        Argument(
            parser=QueueSpec.parse,
            help="Queue configuration in format 'queue=concurrency'. "
            "Examples: 'sms', 'sms=10', 'urgent,sms=5'",
            metavar="QUEUE[,QUEUE2,...][=CONCURRENCY]",
        ),
    ],
):
    """Start a worker to deliver messages from some queues.

    The worker performs delivery jobs from the specified queues,
    as many at a time as specified by the concurrency.
    """
    smsio = Smsio()
    Worker(smsio, queuespec)()


@app.command()
def purge(
    queues: Annotated[
        str,
        Argument(
            help="Comma-separated list of queues to purge. "
            "Examples: 'sms', 'urgent,sms'",
            metavar="QUEUE[,QUEUE2,...]",
        ),
    ],
):
    """Purge all delivery jobs from some queues.

    Pending deliveries on the given queues are dropped and never sent.
    Use with caution as this operation cannot be undone.
    """
    smsio = Smsio()
    try:
        queue_list = [q.strip() for q in queues.split(",") if q.strip()]
        if not queue_list:
            print("Error: No valid queue names provided")
            return

        for queue in queue_list:
            print(f"Purging queue: {queue}")
            smsio.purge(queue=queue)

        print(f"Successfully purged {len(queue_list)} queue(s)")
    finally:
        smsio.shutdown()


if __name__ == "__main__":
    app()
