"""Ledger client that records games in Temporal workflows.

Temporal calls run on a dedicated asyncio loop in a background thread. Every
method returns immediately with a concurrent.futures.Future, so callers on
any thread can keep playing while the ledger catches up.
"""
import asyncio
import logging
import threading
import uuid
from concurrent.futures import Future
from typing import Coroutine, Dict, List, Set

from temporalio.client import Client

from ledgersweeper.client_provider import get_task_queue, get_temporal_client
from ledgersweeper.types import BatchSubmission, Difficulty, FlagToggle, GameConfig, LedgerState
from ledgersweeper.workflows import GameLedgerWorkflow

logger = logging.getLogger(__name__)


async def query_with_retry(handle, query, max_retries=5, backoff=0.1):
    """Query a ledger workflow, retrying while it has not yet started its run."""
    for attempt in range(1, max_retries + 1):
        try:
            return await handle.query(query)
        except Exception as error:
            if attempt == max_retries:
                raise
            delay = attempt * backoff
            logger.info(f"Ledger {handle.id} not queryable yet ({error}), retrying in {delay:.1f}s")
            await asyncio.sleep(delay)


class TemporalLedgerClient:
    """LedgerClient backed by one GameLedgerWorkflow per game."""

    def __init__(self, client: Client, loop: asyncio.AbstractEventLoop, task_queue: str,
                 thread: threading.Thread | None = None):
        self.client = client
        self.loop = loop
        self.task_queue = task_queue
        self._thread = thread
        # Reveal batch tasks still in flight per game; only touched on self.loop
        self._pending_batches: Dict[str, Set[asyncio.Task]] = {}

    @classmethod
    def connect(cls) -> "TemporalLedgerClient":
        """Start the background loop and connect to Temporal on it."""
        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, name="ledger-loop", daemon=True)
        thread.start()

        try:
            client = asyncio.run_coroutine_threadsafe(get_temporal_client(), loop).result()
        except Exception:
            loop.call_soon_threadsafe(loop.stop)
            raise

        logger.info("Ledger gateway connected to Temporal")
        return cls(client, loop, get_task_queue(), thread)

    def close(self) -> None:
        """Stop the background loop. A loop owned by the caller is left running."""
        if self._thread is None:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        logger.info("Ledger gateway closed")

    def _submit(self, coro: Coroutine) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def request_game_creation(self, difficulty: Difficulty, config: GameConfig) -> "Future[str]":
        return self._submit(self._create_game(difficulty, config))

    def submit_reveal_batch(self, remote_game_id: str, cell_indices: List[int],
                            adjacent_mines: List[int]) -> "Future[bool]":
        if len(cell_indices) != len(adjacent_mines):
            raise ValueError(
                f"Reveal batch has {len(cell_indices)} cell indices but {len(adjacent_mines)} adjacency counts"
            )
        submission = BatchSubmission(cell_indices=list(cell_indices), adjacent_mines=list(adjacent_mines))
        return self._submit(self._reveal_batch(remote_game_id, submission))

    def submit_flag_toggle(self, remote_game_id: str, x: int, y: int) -> "Future[None]":
        return self._submit(self._flag_toggle(remote_game_id, FlagToggle(x=x, y=y)))

    def submit_win_claim(self, remote_game_id: str) -> "Future[None]":
        return self._submit(self._win_claim(remote_game_id))

    def close_game(self, remote_game_id: str) -> "Future[None]":
        return self._submit(self._close_game(remote_game_id))

    def fetch_ledger_state(self, remote_game_id: str) -> "Future[LedgerState]":
        return self._submit(self._ledger_state(remote_game_id))

    def _handle(self, remote_game_id: str):
        return self.client.get_workflow_handle_for(GameLedgerWorkflow.run, remote_game_id)

    async def _create_game(self, difficulty: Difficulty, config: GameConfig) -> str:
        game_id = str(uuid.uuid4())
        await self.client.start_workflow(
            GameLedgerWorkflow.run,
            args=[game_id, difficulty, config],
            id=game_id,
            task_queue=self.task_queue,
        )
        logger.info(f"Started ledger workflow {game_id} for {difficulty.name} "
                    f"{config.width}x{config.height} with {config.mine_count} mines")
        return game_id

    async def _reveal_batch(self, remote_game_id: str, submission: BatchSubmission) -> bool:
        task = asyncio.current_task()
        pending = self._pending_batches.setdefault(remote_game_id, set())
        pending.add(task)
        try:
            verdict = await self._handle(remote_game_id).execute_update(
                GameLedgerWorkflow.submit_reveal_batch_update,
                submission,
            )
        finally:
            pending.discard(task)

        if not verdict.accepted:
            logger.warning(f"Ledger {remote_game_id} rejected batch: {verdict.reason}")
        return verdict.accepted

    async def _flag_toggle(self, remote_game_id: str, toggle: FlagToggle) -> None:
        await self._handle(remote_game_id).signal(GameLedgerWorkflow.submit_flag_toggle_signal, toggle)

    async def _win_claim(self, remote_game_id: str) -> None:
        # The claim is settled against recorded reveals, so let batches land first
        pending = list(self._pending_batches.pop(remote_game_id, set()))
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._handle(remote_game_id).signal(GameLedgerWorkflow.submit_win_claim_signal)

    async def _close_game(self, remote_game_id: str) -> None:
        self._pending_batches.pop(remote_game_id, None)
        await self._handle(remote_game_id).signal(GameLedgerWorkflow.close_ledger_signal)
        logger.info(f"Closed ledger workflow {remote_game_id}")

    async def _ledger_state(self, remote_game_id: str) -> LedgerState:
        return await query_with_retry(self._handle(remote_game_id), GameLedgerWorkflow.get_ledger_state_query)
