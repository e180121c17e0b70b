"""
pixform image worker - consumes job ids from RabbitMQ and processes images.
"""

import json
import signal
import threading
import time

import pika
import structlog

from pixform.core.config import settings
from pixform.core.exceptions import JobNotFound
from pixform.core.messaging import declare_job_queue
from pixform.tasks.image import process_image

logger = structlog.get_logger()

shutdown_requested = threading.Event()


def signal_handler(signum, frame):
    logger.info("shutdown_requested", signal=signum)
    shutdown_requested.set()


def on_message(channel, method, properties, body):
    """Handle an incoming image job. Jobs are never retried automatically."""
    try:
        message = json.loads(body)
        job_id = message["job_id"]

        logger.info("job_received", job_id=job_id)

        result = process_image(job_id)
        logger.info("job_finished", job_id=job_id, status=result.get("status"))

        channel.basic_ack(delivery_tag=method.delivery_tag)

    except (json.JSONDecodeError, KeyError, TypeError) as e:
        logger.error("invalid_message", error=str(e))
        channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

    except JobNotFound as e:
        logger.error("job_not_found", error=str(e))
        channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)

    except Exception as e:
        logger.error("processing_error", error=str(e))
        channel.basic_nack(delivery_tag=method.delivery_tag, requeue=True)


def consume(consumer_name: str = "consumer-0") -> None:
    """Consume jobs on a dedicated connection until shutdown is requested."""
    while not shutdown_requested.is_set():
        try:
            params = pika.URLParameters(settings.rabbitmq_url)
            connection = pika.BlockingConnection(params)
            channel = connection.channel()

            declare_job_queue(channel)

            # One job in flight per consumer
            channel.basic_qos(prefetch_count=1)
            channel.basic_consume(queue=settings.job_queue, on_message_callback=on_message)

            logger.info("worker_ready", consumer=consumer_name, queue=settings.job_queue)

            while not shutdown_requested.is_set():
                connection.process_data_events(time_limit=1)

            connection.close()

        except pika.exceptions.AMQPConnectionError as e:
            logger.error("rabbitmq_connection_error", consumer=consumer_name, error=str(e))
            if not shutdown_requested.is_set():
                time.sleep(5)

        except Exception as e:
            logger.error("worker_error", consumer=consumer_name, error=str(e))
            if not shutdown_requested.is_set():
                time.sleep(5)


def main():
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("worker_starting", concurrency=settings.worker_concurrency, tool=settings.image_tool)

    consumers = [
        threading.Thread(target=consume, args=(f"consumer-{i}",), name=f"consumer-{i}", daemon=True)
        for i in range(max(1, settings.worker_concurrency))
    ]
    for thread in consumers:
        thread.start()

    while not shutdown_requested.is_set():
        shutdown_requested.wait(timeout=1)

    for thread in consumers:
        thread.join(timeout=30)

    logger.info("worker_stopped")


if __name__ == "__main__":
    main()
