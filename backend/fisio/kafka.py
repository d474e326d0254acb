# fisio/kafka.py
import json, os, logging
from aiokafka import AIOKafkaProducer

logger = logging.getLogger(__name__)

TOPIC_CHANGES = os.getenv("KAFKA_TOPIC_CHANGES", "fisio.documents.changed")

producer: AIOKafkaProducer | None = None

async def start_kafka():
    global producer
    bootstrap = os.getenv("KAFKA_BOOTSTRAP")
    if not bootstrap:
        logger.info("KAFKA_BOOTSTRAP not set; change events stay in-process.")
        return
    producer = AIOKafkaProducer(
        bootstrap_servers=bootstrap,
        value_serializer=lambda v: json.dumps(v).encode(),
        key_serializer=lambda v: str(v).encode(),
        linger_ms=5,
        acks="all",
        enable_idempotence=True,
    )
    await producer.start()

async def stop_kafka():
    global producer
    if producer:
        await producer.stop()
        producer = None

async def publish_change(collection: str, doc_id: str):
    if producer is None:
        return
    try:
        await producer.send(TOPIC_CHANGES, key=doc_id, value={"collection": collection, "id": doc_id})
    except Exception:
        # 브로커 장애가 요청을 실패시키지 않는다 (DB 커밋은 이미 끝남)
        logger.exception("Failed to forward change %s/%s to Kafka", collection, doc_id)
