"""Unit tests for the resolve-once setup wait."""

import asyncio

import pytest
from live_client.errors import HandshakeTimeoutError
from live_client.setup_wait import PendingSetupWait


class TestPendingSetupWait:
    """Test PendingSetupWait resolution rules."""

    @pytest.mark.asyncio
    async def test_resolve_before_wait(self) -> None:
        """Test a wait resolved before anyone waits returns that value."""
        wait = PendingSetupWait()
        assert wait.resolve(True) is True

        assert await wait.wait(timeout=1.0) is True
        assert wait.is_resolved

    @pytest.mark.asyncio
    async def test_resolve_while_waiting(self) -> None:
        """Test resolution wakes a pending waiter."""
        wait = PendingSetupWait()
        waiter = asyncio.create_task(wait.wait(timeout=1.0))
        await asyncio.sleep(0)

        wait.resolve(True)

        assert await waiter is True

    @pytest.mark.asyncio
    async def test_second_resolution_ignored(self) -> None:
        """Test only the first resolution counts."""
        wait = PendingSetupWait()

        assert wait.resolve(False) is True
        assert wait.resolve(True) is False

        assert await wait.wait(timeout=1.0) is False

    @pytest.mark.asyncio
    async def test_timeout_resolves_false(self) -> None:
        """Test the timeout resolves the wait and reports it."""
        wait = PendingSetupWait()

        with pytest.raises(HandshakeTimeoutError, match="Setup timed out"):
            await wait.wait(timeout=0.01)

        assert wait.is_resolved
        # Late success after the timeout is ignored
        assert wait.resolve(True) is False

    @pytest.mark.asyncio
    async def test_many_resolvers_one_winner(self) -> None:
        """Test concurrent resolvers produce a single result."""
        wait = PendingSetupWait()

        async def resolver(value: bool) -> bool:
            await asyncio.sleep(0)
            return wait.resolve(value)

        results = await asyncio.gather(*(resolver(i % 2 == 0) for i in range(10)))

        assert results.count(True) == 1
        assert await wait.wait(timeout=1.0) is True
