import pytest
from temporalio.testing import ActivityEnvironment

from ledgersweeper.activities import settle_win_claim, verify_reveal_batch
from ledgersweeper.types import BOARD_CONFIGS, BatchSubmission, Difficulty, GameConfig, LedgerState, LedgerStatus


@pytest.fixture
def env():
    return ActivityEnvironment()


@pytest.fixture
def ledger_state():
    return LedgerState(game_id="game-1", difficulty=Difficulty.BEGINNER, config=BOARD_CONFIGS[Difficulty.BEGINNER])


@pytest.mark.asyncio
async def test_accepts_well_formed_batch(env, ledger_state):
    verdict = await env.run(verify_reveal_batch, ledger_state, BatchSubmission([40, 30, 31], [0, 1, 2]))
    assert verdict.accepted
    assert verdict.reason is None


@pytest.mark.asyncio
@pytest.mark.parametrize("submission", [
    BatchSubmission([1, 2], [0]),
    BatchSubmission([], []),
    BatchSubmission([81], [0]),
    BatchSubmission([-1], [0]),
    BatchSubmission([3], [9]),
    BatchSubmission([4, 4], [1, 1]),
])
async def test_rejects_malformed_batch(env, ledger_state, submission):
    verdict = await env.run(verify_reveal_batch, ledger_state, submission)
    assert not verdict.accepted
    assert verdict.reason


@pytest.mark.asyncio
async def test_rejects_cells_already_recorded(env, ledger_state):
    ledger_state.revealed_indices = [10, 11]
    verdict = await env.run(verify_reveal_batch, ledger_state, BatchSubmission([12, 11], [1, 1]))
    assert not verdict.accepted
    assert "11" in verdict.reason


@pytest.mark.asyncio
async def test_rejects_batches_after_settlement(env, ledger_state):
    ledger_state.status = LedgerStatus.WIN_CONFIRMED
    verdict = await env.run(verify_reveal_batch, ledger_state, BatchSubmission([0], [0]))
    assert not verdict.accepted


@pytest.mark.asyncio
async def test_win_claim_confirmed_when_all_safe_cells_recorded(env, ledger_state):
    ledger_state.revealed_indices = list(range(71))
    assert await env.run(settle_win_claim, ledger_state) == LedgerStatus.WIN_CONFIRMED


@pytest.mark.asyncio
async def test_win_claim_rejected_when_cells_missing(env, ledger_state):
    ledger_state.revealed_indices = list(range(70))
    assert await env.run(settle_win_claim, ledger_state) == LedgerStatus.WIN_REJECTED


@pytest.mark.asyncio
async def test_win_claim_keeps_settled_status(env, ledger_state):
    ledger_state.status = LedgerStatus.CLOSED
    assert await env.run(settle_win_claim, ledger_state) == LedgerStatus.CLOSED


@pytest.mark.asyncio
async def test_custom_board_is_checked_against_its_own_size(env):
    ledger_state = LedgerState(
        game_id="game-2",
        difficulty=Difficulty.BEGINNER,
        config=GameConfig(width=4, height=4, mine_count=2),
    )
    verdict = await env.run(verify_reveal_batch, ledger_state, BatchSubmission([16], [0]))
    assert not verdict.accepted

    ledger_state.revealed_indices = [i for i in range(16) if i not in (0, 15)]
    assert await env.run(settle_win_claim, ledger_state) == LedgerStatus.WIN_CONFIRMED
