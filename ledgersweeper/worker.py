"""Temporal worker hosting the game ledger."""
import asyncio
import logging
from temporalio.client import Client
from temporalio.worker import Worker
from ledgersweeper.workflows import GameLedgerWorkflow
from ledgersweeper import activities
from ledgersweeper.client_provider import get_task_queue, get_temporal_client

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

LEDGER_ACTIVITIES = [
    activities.verify_reveal_batch,
    activities.settle_win_claim,
]


def build_worker(client: Client, task_queue: str) -> Worker:
    """Worker running every ledger workflow and activity on task_queue."""
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[GameLedgerWorkflow],
        activities=LEDGER_ACTIVITIES,
    )


async def main():
    client = await get_temporal_client()
    task_queue = get_task_queue()
    worker = build_worker(client, task_queue)

    logger.info(f"Ledger worker polling {task_queue} in namespace {client.namespace}")
    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
