"""Single-slot wait for the setup handshake result.

A connect attempt waits on one PendingSetupWait. It can be resolved by the
receive loop (setupComplete), by a receive error, by disconnect(), or by the
setup timeout. Only the first resolution counts; later attempts are ignored.
"""

import asyncio
import logging

from live_client.errors import HandshakeTimeoutError

logger = logging.getLogger(__name__)


class PendingSetupWait:
    """Resolve-once result cell backed by an asyncio future."""

    def __init__(self) -> None:
        self._future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

    @property
    def is_resolved(self) -> bool:
        return self._future.done()

    def resolve(self, success: bool) -> bool:
        """Resolve the wait.

        Args:
            success: Whether the session became usable

        Returns:
            True if this call resolved the wait, False if it was already resolved
        """
        if self._future.done():
            logger.debug("Setup wait already resolved, ignoring", extra={"success": success})
            return False

        self._future.set_result(success)
        return True

    async def wait(self, timeout: float) -> bool:
        """Wait for resolution, resolving with False on timeout.

        Args:
            timeout: Seconds to wait

        Returns:
            The resolved value

        Raises:
            HandshakeTimeoutError: If the timeout expired before any other
                resolution
        """
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        except TimeoutError:
            if self.resolve(False):
                raise HandshakeTimeoutError("Setup timed out") from None
            return self._future.result()
