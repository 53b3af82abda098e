"""Worker process: assembly consumers plus one deploy consumer.

Run standalone: python -m sitegen.worker.main (or ``sitegen worker``)
"""

import asyncio
import os
import signal
import socket

import structlog

from sitegen.config import Settings, get_settings
from sitegen.database import Database
from sitegen.deploy import DeploymentTrigger
from sitegen.generator import (
    BuildRunner,
    ContentGenerator,
    ProjectAssembler,
    TemplateRenderer,
    get_catalog,
)
from sitegen.generator.llm import LLMFactory
from sitegen.logging_config import setup_logging
from sitegen.queues import (
    ASSEMBLY_GROUP,
    ASSEMBLY_QUEUE,
    DEPLOY_GROUP,
    DEPLOY_QUEUE,
    ensure_consumer_groups,
    promote_due,
)
from sitegen.redis_client import RedisStreamClient
from sitegen.storage import SqlProjectStore

from .assembly import AssemblyWorker
from .consumer import StreamConsumer
from .deploy_consumer import DeployConsumer

logger = structlog.get_logger(__name__)


def consumer_name(kind: str, index: int = 0) -> str:
    return f"{kind}-{socket.gethostname()}-{os.getpid()}-{index}"


def build_content_generator(settings: Settings) -> ContentGenerator:
    if not settings.llm_api_key:
        logger.warning("llm_disabled", reason="no api key", provider=settings.llm_provider)
        return ContentGenerator(None, model=settings.llm_model)
    return ContentGenerator(LLMFactory.create_llm(settings), model=settings.llm_model)


async def run_worker(settings: Settings | None = None) -> None:
    """Main worker loop. Returns after SIGINT/SIGTERM once in-flight jobs finish."""
    settings = settings or get_settings()
    setup_logging(
        service_name="worker", log_format=settings.log_format, log_level=settings.log_level
    )

    db = Database.from_settings(settings)
    db.connect()
    stream = RedisStreamClient(settings.redis_url)
    await stream.connect()
    await ensure_consumer_groups(stream.redis)

    store = SqlProjectStore(db)
    catalog = get_catalog()
    assembler = ProjectAssembler(
        TemplateRenderer(settings.template_dir),
        build_content_generator(settings),
        catalog,
        output_root=settings.output_root,
        base_domain=settings.base_domain,
    )
    builder = BuildRunner(
        install_command=settings.install_command,
        build_command=settings.build_command,
        timeout_seconds=settings.build_timeout_seconds,
        enabled=settings.build_enabled,
    )
    worker = AssemblyWorker(
        store,
        stream,
        assembler,
        builder,
        base_domain=settings.base_domain,
        retry_base_delay=settings.retry_base_delay_seconds,
        retry_max_delay=settings.retry_max_delay_seconds,
    )
    trigger = DeploymentTrigger.from_settings(store, settings)
    missing = trigger.check_credentials()
    if missing:
        logger.warning("deploy_credentials_missing", missing=missing)
    deployer = DeployConsumer(trigger, stream)

    async def promote() -> int:
        return await promote_due(stream.redis)

    consumers = [
        StreamConsumer(
            stream,
            ASSEMBLY_QUEUE,
            ASSEMBLY_GROUP,
            consumer_name("assembly", i),
            worker.handle,
            block_ms=settings.worker_block_ms,
            visibility_timeout_ms=settings.visibility_timeout_ms,
            before_poll=promote,
        )
        for i in range(settings.worker_concurrency)
    ]
    consumers.append(
        StreamConsumer(
            stream,
            DEPLOY_QUEUE,
            DEPLOY_GROUP,
            consumer_name("deploy"),
            deployer.handle,
            block_ms=settings.worker_block_ms,
            visibility_timeout_ms=settings.visibility_timeout_ms,
        )
    )

    def handle_shutdown(signum: int) -> None:
        logger.info("shutdown_signal_received", signal=signum)
        for consumer in consumers:
            consumer.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_shutdown, sig)

    logger.info(
        "worker_started",
        assembly_consumers=settings.worker_concurrency,
        output_root=str(settings.output_root),
    )
    try:
        await asyncio.gather(*(consumer.run() for consumer in consumers))
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await stream.close()
        await db.dispose()
        logger.info("worker_shutdown")


def main() -> None:
    """Entry point for running as module."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
