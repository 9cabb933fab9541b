from concurrent.futures import FIRST_COMPLETED
from concurrent.futures import Future
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import wait
from contextlib import suppress
from heapq import heappop
from heapq import heappush
from itertools import count
from queue import Queue
from queue import ShutDown
from threading import Condition
from time import monotonic

import structlog

from .arguments import DeserializationFailure
from .envelope import Envelope
from .job import deserialize
from .queuespec import QueueSpec
from .smsio import Smsio

logger = structlog.get_logger()


class Worker:
    """Perform delivery jobs received from the broker.

    A receiver thread keeps the broker's receiver iterating and hands
    envelopes to runner threads, one for each unit of concurrency. Jobs that
    aren't due yet are paused and wait on a single scheduler thread. Any
    still waiting when the worker shuts down are enqueued again so another
    worker can pick them up.
    """

    def __init__(self, smsio: Smsio, queuespec: QueueSpec):
        self.__smsio = smsio
        self.__queuespec = queuespec
        self.__receiver = smsio.receive(queuespec)
        self.__tasks = Queue[Envelope]()
        self.__scheduler = Condition()
        self.__scheduled: list[tuple[float, int, Envelope, str]] = []
        self.__sequence = count()
        self.__stopping = False
        self.__executor = ThreadPoolExecutor(
            max_workers=queuespec.concurrency + 2,
            thread_name_prefix="smsio-worker",
        )
        self.__futures: list[Future] = []

    def start(self):
        logger.info("worker_started", queuespec=str(self.__queuespec))
        self.__futures = [
            self.__executor.submit(self.__receive),
            self.__executor.submit(self.__schedule),
            *(
                self.__executor.submit(self.__run)
                for _ in range(self.__queuespec.concurrency)
            ),
        ]

    def __call__(self):
        self.start()
        try:
            done, _ = wait(self.__futures, return_when=FIRST_COMPLETED)
            for future in done:
                future.result()
        except KeyboardInterrupt:
            logger.info("worker_interrupted")
        finally:
            self.shutdown()

    def __receive(self):
        """Put envelopes from the receiver onto the task queue."""
        for envelope in self.__receiver:
            with suppress(ShutDown):
                self.__tasks.put(envelope)
        self.__tasks.shutdown()

    def __run(self):
        """Perform jobs from the task queue until it shuts down."""
        while True:
            try:
                envelope = self.__tasks.get()
            except ShutDown:
                break

            try:
                self.__perform(envelope)
            finally:
                self.__tasks.task_done()

    def __perform(self, envelope: Envelope):
        try:
            job = deserialize(envelope.body)
        except DeserializationFailure:
            logger.exception("job_undecodable", body=envelope.body[:200])
            self.__receiver.finish(envelope)
            return

        if (delay := job.delay()) > 0:
            self.__defer(envelope, delay, queue=job.queue)
            logger.debug("job_deferred", job_id=job.id, delay=delay)
            return

        try:
            with self.__smsio.activate():
                job.run()
        except Exception:
            # Retrying is left to whoever inspects the failure
            logger.exception(
                "job_failed",
                job_id=job.id,
                composer=job.composer,
                action=job.action,
            )
        else:
            logger.info(
                "job_performed",
                job_id=job.id,
                composer=job.composer,
                action=job.action,
            )
        finally:
            self.__receiver.finish(envelope)

    def __defer(self, envelope: Envelope, delay: float, *, queue: str):
        self.__receiver.pause(envelope)
        with self.__scheduler:
            if not self.__stopping:
                heappush(
                    self.__scheduled,
                    (monotonic() + delay, next(self.__sequence), envelope, queue),
                )
                self.__scheduler.notify()
                return
        self.__requeue([(envelope, queue)])

    def __schedule(self):
        """Hand paused envelopes back to the runners once they are due."""
        with self.__scheduler:
            while not self.__stopping:
                if not self.__scheduled:
                    self.__scheduler.wait()
                    continue
                remaining = self.__scheduled[0][0] - monotonic()
                if remaining > 0:
                    self.__scheduler.wait(remaining)
                    continue

                entry = heappop(self.__scheduled)
                envelope = entry[2]
                self.__receiver.unpause(envelope)
                try:
                    self.__tasks.put(envelope)
                except ShutDown:
                    # Shutdown requeues whatever is still scheduled
                    heappush(self.__scheduled, entry)
                    return

    def __requeue(self, entries: list[tuple[Envelope, str]]):
        """Return paused envelopes to the broker for another worker."""
        for envelope, queue in entries:
            self.__smsio.broker.enqueue(envelope.body, queue=queue)
            logger.info("job_requeued", queue=queue)

    def shutdown(self):
        with self.__scheduler:
            self.__stopping = True
            scheduled = [
                (envelope, queue) for _, _, envelope, queue in self.__scheduled
            ]
            self.__scheduled.clear()
            self.__scheduler.notify_all()
        self.__tasks.shutdown(immediate=True)
        self.__requeue(scheduled)
        self.__smsio.shutdown()
        self.__executor.shutdown(wait=True)
        logger.info("worker_stopped", queuespec=str(self.__queuespec))
