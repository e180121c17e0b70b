import json

import pika
import structlog

from .config import settings

logger = structlog.get_logger()


def declare_job_queue(channel) -> None:
    """Declare the job exchange and queue. Publisher and consumer both call this."""
    channel.exchange_declare(exchange=settings.job_exchange, exchange_type="direct", durable=True)
    channel.queue_declare(queue=settings.job_queue, durable=True)
    channel.queue_bind(queue=settings.job_queue, exchange=settings.job_exchange, routing_key="process")


class JobPublisher:
    """RabbitMQ publisher handing job ids to the image workers."""

    def __init__(self) -> None:
        self._connection: pika.BlockingConnection | None = None
        self._channel = None

    def _connect(self) -> None:
        if self._connection is None or self._connection.is_closed:
            params = pika.URLParameters(settings.rabbitmq_url)
            self._connection = pika.BlockingConnection(params)
            self._channel = self._connection.channel()
            declare_job_queue(self._channel)

    def publish_image_job(self, job_id: str) -> None:
        """Publish an image job. Only call once the job row is committed."""
        self._connect()

        self._channel.basic_publish(
            exchange=settings.job_exchange,
            routing_key="process",
            body=json.dumps({"job_id": job_id}),
            properties=pika.BasicProperties(
                delivery_mode=2,  # persistent
                content_type="application/json",
            ),
        )

        logger.info("job_published", job_id=job_id, queue=settings.job_queue)

    def close(self) -> None:
        if self._connection and not self._connection.is_closed:
            self._connection.close()


_publisher: JobPublisher | None = None


def get_publisher() -> JobPublisher:
    global _publisher
    if _publisher is None:
        _publisher = JobPublisher()
    return _publisher
