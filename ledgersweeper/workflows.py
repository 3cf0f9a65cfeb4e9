"""Temporal workflow acting as the append-only ledger of one game."""
import asyncio
from datetime import timedelta
from temporalio import workflow

with workflow.unsafe.imports_passed_through():
    from ledgersweeper.types import (
        BOARD_CONFIGS,
        BatchSubmission,
        Difficulty,
        FlagToggle,
        GameConfig,
        LedgerState,
        LedgerStatus,
        SubmissionVerdict,
    )
    from ledgersweeper.activities import settle_win_claim, verify_reveal_batch


@workflow.defn
class GameLedgerWorkflow:
    """Workflow that records the confirmed history of a single game."""

    def __init__(self):
        self.game_id: str = ""
        self.ledger: LedgerState | None = None
        self.last_activity_time: float = 0
        self.should_close: bool = False
        # Batches are verified against the recorded reveals one at a time
        self.append_lock = asyncio.Lock()

    @workflow.run
    async def run(self, game_id: str, difficulty: Difficulty, config: GameConfig) -> LedgerState:
        """Main workflow entry point."""
        self.game_id = game_id
        self.last_activity_time = workflow.time()
        self.ledger = LedgerState(
            game_id=game_id,
            difficulty=difficulty,
            config=config,
            created_at=workflow.now(),
        )

        # Auto-close after 24 hours of inactivity
        inactivity_timeout = timedelta(hours=24)
        check_interval = timedelta(minutes=1)

        while not self.should_close:
            try:
                await workflow.wait_condition(
                    lambda: self.should_close or
                            (workflow.time() - self.last_activity_time) >= inactivity_timeout.total_seconds(),
                    timeout=check_interval,
                )
            except asyncio.TimeoutError:
                pass

            if (workflow.time() - self.last_activity_time) >= inactivity_timeout.total_seconds():
                workflow.logger.info(f"Ledger {game_id} auto-closing due to 24 hours of inactivity")
                break

        if self.ledger.status == LedgerStatus.OPEN:
            self.ledger.status = LedgerStatus.CLOSED

        workflow.logger.info(f"Ledger workflow {game_id} completed with status {self.ledger.status.value}")
        return self.ledger

    @workflow.update
    async def submit_reveal_batch_update(self, submission: BatchSubmission) -> SubmissionVerdict:
        """Verify a reveal batch and append it when accepted."""
        await workflow.wait_condition(lambda: self.ledger is not None)
        self.last_activity_time = workflow.time()

        async with self.append_lock:
            verdict = await workflow.execute_activity(
                verify_reveal_batch,
                args=[self.ledger, submission],
                start_to_close_timeout=timedelta(seconds=60),
            )

            if verdict.accepted:
                self.ledger.batches.append(submission)
                self.ledger.revealed_indices.extend(submission.cell_indices)
        return verdict

    @workflow.signal
    async def submit_flag_toggle_signal(self, toggle: FlagToggle) -> None:
        """Record a flag toggle (fire-and-forget)."""
        await workflow.wait_condition(lambda: self.ledger is not None)
        if self.ledger.status != LedgerStatus.OPEN:
            return

        self.last_activity_time = workflow.time()
        self.ledger.flag_toggles.append(toggle)

    @workflow.signal
    async def submit_win_claim_signal(self) -> None:
        """Settle a win claim against the recorded reveals (fire-and-forget)."""
        await workflow.wait_condition(lambda: self.ledger is not None)
        self.last_activity_time = workflow.time()

        try:
            async with self.append_lock:
                status = await workflow.execute_activity(
                    settle_win_claim,
                    self.ledger,
                    start_to_close_timeout=timedelta(seconds=60),
                )
        except Exception as error:
            workflow.logger.error(f"Error settling win claim: {error}")
            return

        self.ledger.status = status
        self.ledger.settled_at = workflow.now()

    @workflow.signal
    def close_ledger_signal(self) -> None:
        """Signal to close the ledger."""
        self.should_close = True

    @workflow.query
    def get_ledger_state_query(self) -> LedgerState:
        """Query to get the recorded ledger state."""
        if not self.ledger:
            return LedgerState(
                game_id=self.game_id,
                difficulty=Difficulty.BEGINNER,
                config=BOARD_CONFIGS[Difficulty.BEGINNER],
            )
        return self.ledger
