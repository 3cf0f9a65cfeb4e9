import asyncio
import uuid

import pytest
import pytest_asyncio
from temporalio.testing import WorkflowEnvironment

from ledgersweeper.gateway import TemporalLedgerClient
from ledgersweeper.types import Difficulty, GameConfig, LedgerStatus
from ledgersweeper.worker import build_worker
from ledgersweeper.workflows import GameLedgerWorkflow

pytestmark = pytest.mark.asyncio(loop_scope="module")

# 4x4 board with mines at indices 0 and 15
CORNERS = GameConfig(width=4, height=4, mine_count=2)
SAFE_INDICES = [index for index in range(16) if index not in (0, 15)]


@pytest_asyncio.fixture(loop_scope="module", scope="module")
async def env():
    # Updates need the dev server; the time-skipping test server lacks them
    try:
        env = await WorkflowEnvironment.start_local()
    except Exception as error:
        pytest.skip(f"Temporal dev server unavailable: {error}")
    async with env:
        yield env


@pytest_asyncio.fixture(loop_scope="module", scope="module")
async def gateway(env):
    task_queue = f"ledger-test-{uuid.uuid4()}"
    async with build_worker(env.client, task_queue):
        yield TemporalLedgerClient(env.client, asyncio.get_running_loop(), task_queue)


async def start_game(gateway, config=CORNERS):
    return await asyncio.wrap_future(gateway.request_game_creation(Difficulty.BEGINNER, config))


async def submit(gateway, game_id, cell_indices, adjacent_mines):
    return await asyncio.wrap_future(gateway.submit_reveal_batch(game_id, cell_indices, adjacent_mines))


async def ledger_state(gateway, game_id):
    return await asyncio.wrap_future(gateway.fetch_ledger_state(game_id))


async def wait_for_status(gateway, game_id, attempts=50):
    for _ in range(attempts):
        state = await ledger_state(gateway, game_id)
        if state.status != LedgerStatus.OPEN:
            return state
        await asyncio.sleep(0.1)
    return state


async def test_accepted_batch_is_recorded(gateway):
    game_id = await start_game(gateway)

    assert await submit(gateway, game_id, [1, 2], [1, 1])
    await asyncio.wrap_future(gateway.submit_flag_toggle(game_id, 0, 0))

    state = await ledger_state(gateway, game_id)
    assert state.game_id == game_id
    assert state.config == CORNERS
    assert state.revealed_indices == [1, 2]
    assert [batch.cell_indices for batch in state.batches] == [[1, 2]]
    assert state.status == LedgerStatus.OPEN
    assert state.created_at is not None


async def test_cell_recorded_twice_is_rejected(gateway):
    game_id = await start_game(gateway)

    assert await submit(gateway, game_id, [5, 6], [2, 1])
    assert not await submit(gateway, game_id, [7, 6], [1, 1])

    state = await ledger_state(gateway, game_id)
    assert state.revealed_indices == [5, 6]


async def test_concurrent_overlapping_batches_record_one(gateway):
    game_id = await start_game(gateway)

    verdicts = await asyncio.gather(
        submit(gateway, game_id, [5, 6], [2, 1]),
        submit(gateway, game_id, [6, 9], [1, 2]),
    )
    assert sorted(verdicts) == [False, True]

    state = await ledger_state(gateway, game_id)
    assert len(state.batches) == 1
    assert len(state.revealed_indices) == 2


async def test_win_claim_waits_for_batches_in_flight(gateway):
    game_id = await start_game(gateway)

    batch = gateway.submit_reveal_batch(game_id, SAFE_INDICES, [1] * len(SAFE_INDICES))
    await asyncio.wrap_future(gateway.submit_win_claim(game_id))
    assert await asyncio.wrap_future(batch)

    state = await wait_for_status(gateway, game_id)
    assert state.status == LedgerStatus.WIN_CONFIRMED
    assert state.settled_at is not None


async def test_premature_win_claim_is_rejected(gateway):
    game_id = await start_game(gateway)

    assert await submit(gateway, game_id, [1], [1])
    await asyncio.wrap_future(gateway.submit_win_claim(game_id))

    state = await wait_for_status(gateway, game_id)
    assert state.status == LedgerStatus.WIN_REJECTED
    assert not await submit(gateway, game_id, [2], [1])


async def test_closed_game_completes_with_its_record(env, gateway):
    game_id = await start_game(gateway)
    assert await submit(gateway, game_id, [3], [1])

    await asyncio.wrap_future(gateway.close_game(game_id))

    handle = env.client.get_workflow_handle_for(GameLedgerWorkflow.run, game_id)
    result = await handle.result()
    assert result.status == LedgerStatus.CLOSED
    assert result.revealed_indices == [3]
