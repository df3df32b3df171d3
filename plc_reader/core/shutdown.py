import asyncio
import logging
import signal
from typing import Optional

from .clients.opcua_client import ConnectionManager
from .poll_scheduler import PollScheduler
from .sink import OutputSink
from .subscription_engine import SubscriptionEngine


class ShutdownCoordinator:
    """
    Ordered, one-shot teardown of both acquisition paths.

    The first request stops the poll scheduler, terminates the subscription
    and disconnects the session, in that order. Further requests while the
    teardown runs (or after it finished) are ignored.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(
        self,
        scheduler: Optional[PollScheduler],
        engine: Optional[SubscriptionEngine],
        connection: ConnectionManager,
        sink: Optional[OutputSink] = None
    ):
        self.scheduler = scheduler
        self.engine = engine
        self.connection = connection
        self.sink = sink
        self.exit_code = 0
        self.logger = logging.getLogger(__name__)

        self._done = asyncio.Event()
        self._teardown_task: Optional[asyncio.Task] = None

    @property
    def requested(self) -> bool:
        return self._teardown_task is not None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        loop = loop or asyncio.get_running_loop()
        for sig in self.SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                self.logger.warning(f"Signal handlers are not supported here, {sig.name} not handled")

    def request_shutdown(self, signame: Optional[str] = None) -> bool:
        """Start the teardown. Returns False if it was already requested."""
        if self._teardown_task is not None:
            self.logger.info(f"Shutdown already in progress, ignoring {signame or 'request'}")
            return False

        self.logger.info(f"Shutdown requested ({signame or 'manual'})")
        self._teardown_task = asyncio.get_running_loop().create_task(self._teardown())
        return True

    async def _teardown(self):
        steps = []
        if self.scheduler is not None:
            steps.append(("poll scheduler", self.scheduler.stop))
        if self.engine is not None:
            steps.append(("subscription", self.engine.terminate))
        steps.append(("connection", self.connection.disconnect))
        if self.sink is not None:
            steps.append(("output sink", self.sink.close))

        try:
            for name, step in steps:
                try:
                    await step()
                except Exception as e:
                    self.logger.error(f"Error stopping {name}: {e}")
        finally:
            self.logger.info("Shutdown complete")
            self._done.set()

    async def wait(self) -> int:
        """Block until the teardown has finished and return the exit status."""
        await self._done.wait()
        return self.exit_code

    async def shutdown(self, signame: Optional[str] = None) -> int:
        self.request_shutdown(signame)
        return await self.wait()
