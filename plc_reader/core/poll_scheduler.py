import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from asyncua import Client

from .models import AcquisitionPath, ValueEnvelope
from .sink import OutputSink, Reading, deliver
from .tags import Tag, TagRegistry


@dataclass
class PollCycle:
    """Result of one pass over every tag in the registry"""
    number: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    readings: List[Reading] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


class PollScheduler:
    def __init__(
        self,
        session: Client,
        registry: TagRegistry,
        sink: OutputSink,
        interval: float = 1.0,
        read_timeout: Optional[float] = None
    ):
        """
        Poll acquisition path.

        Args:
            session: connected asyncua client shared with the subscription
            registry: tags to read, in order
            sink: destination of decoded readings
            interval (float): seconds between the starts of two cycles
            read_timeout (float): optional per-read timeout in seconds
        """
        self.session = session
        self.registry = registry
        self.sink = sink
        self.interval = interval
        self.read_timeout = read_timeout
        self.logger = logging.getLogger(__name__)

        self.cycles_completed = 0
        self.last_cycle: Optional[PollCycle] = None
        self._cycle_number = 0
        self._cycle_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def read_tag(self, tag: Tag) -> ValueEnvelope:
        node = self.session.get_node(tag.node_address)
        if self.read_timeout:
            async with asyncio.timeout(self.read_timeout):
                data_value = await node.read_data_value()
        else:
            data_value = await node.read_data_value()
        return ValueEnvelope.from_data_value(data_value)

    async def run_cycle(self) -> PollCycle:
        """Read every tag once, sequentially and in registry order."""
        async with self._cycle_lock:
            self._cycle_number += 1
            cycle = PollCycle(number=self._cycle_number, started_at=datetime.now())

            for tag in self.registry:
                try:
                    envelope = await self.read_tag(tag)
                    reading = await deliver(
                        self.sink, AcquisitionPath.POLL, tag.name, envelope, self.logger, cycle=cycle.number
                    )
                    if reading is not None:
                        cycle.readings.append(reading)
                except asyncio.TimeoutError:
                    self.logger.error(f"Timeout reading {tag.name}")
                    cycle.failures[tag.name] = "timeout"
                except Exception as e:
                    self.logger.error(f"Error reading {tag.name}: {e}")
                    cycle.failures[tag.name] = str(e)

            cycle.finished_at = datetime.now()
            self.cycles_completed += 1
            self.last_cycle = cycle
            return cycle

    def start(self):
        """Start polling. The first cycle runs one interval from now."""
        if self.is_running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop(), name="poll-scheduler")

    async def _poll_loop(self):
        loop = asyncio.get_running_loop()
        delay = self.interval
        while self._running:
            await asyncio.sleep(delay)
            started = loop.time()
            try:
                await self.run_cycle()
            except Exception as e:
                self.logger.error(f"Error in poll cycle: {e}")

            elapsed = loop.time() - started
            if elapsed > self.interval:
                self.logger.warning(
                    f"Poll cycle took {elapsed:.3f}s, longer than the {self.interval}s interval"
                )
            # Overrunning cycles run back to back, never concurrently
            delay = max(0.0, self.interval - elapsed)

    async def stop(self):
        """Stop scheduling cycles; an in-flight cycle is cancelled, not awaited."""
        self._running = False
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                self.logger.info("Poll scheduler stopped")
