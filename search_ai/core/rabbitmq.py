import json
import logging
from functools import partial
from typing import Any, AsyncContextManager, Callable, Dict

import aio_pika
from aio_pika.abc import AbstractIncomingMessage

from search_ai.core.config import settings
from search_ai.services.import_service import ProductImportService

logger = logging.getLogger(__name__)

# Main (where the store platform webhooks are relayed)
MAIN_EXCHANGE_NAME = "products.topic"
MAIN_QUEUE_NAME = "search_ai.product.sync.queue"
UPSERT_ROUTING_KEYS = ("product.created", "product.updated")
DELETE_ROUTING_KEY = "product.deleted"
PUBLISH_ROUTING_KEYS = ("product.published", "product.unpublished")
ROUTING_KEYS = [*UPSERT_ROUTING_KEYS, DELETE_ROUTING_KEY, *PUBLISH_ROUTING_KEYS]

# Dead letter
DLX_EXCHANGE_NAME = "products.dlx"
DLQ_QUEUE_NAME = "search_ai.product.sync.dlq"
DLQ_ROUTING_KEY = "dead.letter"

ServiceScope = Callable[[], AsyncContextManager[ProductImportService]]


class EventHandlingError(Exception):
    """The event was understood but the operation reported a failure."""


async def handle_product_event(
    routing_key: str, data: Dict[str, Any], service: ProductImportService
) -> None:
    app_id = int(data["app_id"])

    if routing_key in UPSERT_ROUTING_KEYS:
        result = await service.upsert_from_payload(app_id, data["product"])
        if result.status != 200:
            raise EventHandlingError(result.message)
        return

    product_id = str(data["product_id"])
    if routing_key == DELETE_ROUTING_KEY:
        outcome = await service.delete_product(app_id, product_id)
    elif routing_key in PUBLISH_ROUTING_KEYS:
        outcome = await service.set_published_status_with_fetch(
            app_id, product_id, routing_key == "product.published"
        )
    else:
        raise EventHandlingError(f"Unsupported routing key: {routing_key}")

    if not outcome.success:
        raise EventHandlingError(outcome.message)


async def process_message(message: AbstractIncomingMessage, service_scope: ServiceScope):
    async with message.process(ignore_processed=True):
        try:
            body = message.body.decode()
            try:
                data = json.loads(body)
            except json.JSONDecodeError:
                logger.error("Invalid JSON. Sending to DLQ.")
                await message.nack(requeue=False)
                return

            logger.info(
                f"Received: app {data.get('app_id', '?')} | Event: {message.routing_key}"
            )

            async with service_scope() as service:
                await handle_product_event(message.routing_key, data, service)

            logger.info(f"✅ Success: {message.routing_key} for app {data.get('app_id')}")

        except Exception as e:
            logger.error(f"❌ Error processing message: {e}", exc_info=True)
            # requeue=False routes the message to the DLQ configured on the main queue
            await message.nack(requeue=False)


async def start_rabbitmq_consumer(service_scope: ServiceScope):
    try:
        connection = await aio_pika.connect_robust(settings.RABBITMQ_URL)
        channel = await connection.channel()
        await channel.set_qos(prefetch_count=10)

        # Dead letter infrastructure
        dlx = await channel.declare_exchange(
            DLX_EXCHANGE_NAME,
            aio_pika.ExchangeType.DIRECT,
            durable=True
        )
        dlq = await channel.declare_queue(DLQ_QUEUE_NAME, durable=True)
        await dlq.bind(dlx, routing_key=DLQ_ROUTING_KEY)

        # Main infrastructure
        main_exchange = await channel.declare_exchange(
            MAIN_EXCHANGE_NAME,
            aio_pika.ExchangeType.TOPIC,
            durable=True
        )
        main_queue = await channel.declare_queue(
            MAIN_QUEUE_NAME,
            durable=True,
            arguments={
                "x-dead-letter-exchange": DLX_EXCHANGE_NAME,
                "x-dead-letter-routing-key": DLQ_ROUTING_KEY
            }
        )

        for key in ROUTING_KEYS:
            await main_queue.bind(main_exchange, routing_key=key)

        logger.info(f"Consumer listening on '{MAIN_QUEUE_NAME}' at exchange '{MAIN_EXCHANGE_NAME}'")

        await main_queue.consume(partial(process_message, service_scope=service_scope))
        return connection

    except Exception as e:
        logger.critical(f"Fatal RabbitMQ error: {e}")
        raise e
