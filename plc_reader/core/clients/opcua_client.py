import asyncio
import logging
from typing import Callable, Optional

from asyncua import Client

from ..errors import ServerConnectionError, SessionError
from ..models import ConnectionOptions, ConnectionState


class ConnectionManager:
    """Owns the OPC UA client and its single session."""

    def __init__(self, options: ConnectionOptions, client_factory: Callable[..., Client] = Client):
        self.options = options
        self.client: Optional[Client] = None
        self.state = ConnectionState.DISCONNECTED
        self.connection_attempts = 0
        self.logger = logging.getLogger(__name__)
        self._client_factory = client_factory
        self._disconnect_task: Optional[asyncio.Task] = None
        self._abort_connect = False
        self._connect_finished = asyncio.Event()
        self._connect_finished.set()

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED and self.client is not None

    @property
    def session(self) -> Client:
        """The live session handle used for reads and subscriptions."""
        if not self.is_connected:
            raise SessionError(f"No OPC UA session ({self.state.value})")
        return self.client

    def _set_state(self, state: ConnectionState):
        self.state = state
        self.logger.debug(f"Connection state set to {state.value}")

    async def connect(self) -> Client:
        """Establish the session, retrying as the configured strategy allows."""
        if self.is_connected:
            return self.client
        if self.state != ConnectionState.DISCONNECTED:
            raise SessionError(f"Cannot connect while {self.state.value}")

        self._set_state(ConnectionState.CONNECTING)
        self._abort_connect = False
        self._connect_finished.clear()
        try:
            return await self._connect_with_retry()
        finally:
            self._connect_finished.set()

    async def _connect_with_retry(self) -> Client:
        strategy = self.options.retry_strategy
        max_attempts = strategy.max_retry + 1
        delay = strategy.initial_delay
        last_error: Optional[Exception] = None

        self.connection_attempts = 0
        while self.connection_attempts < max_attempts and not self._abort_connect:
            self.connection_attempts += 1
            self.logger.info(
                f"Attempt {self.connection_attempts}/{max_attempts} to connect to {self.options.endpoint}"
            )
            try:
                client = await self._open_session()
                if self._abort_connect:
                    await self._close_quietly(client)
                    break
                self.client = client
                self._set_state(ConnectionState.CONNECTED)
                self.logger.info(f"Connected to OPC UA server at: {self.options.endpoint}")
                return self.client
            except asyncio.TimeoutError as e:
                last_error = e
                self.logger.error("Connection attempt timed out")
            except Exception as e:
                last_error = e
                self.logger.error(f"Connection attempt failed: {e}")

            if self.connection_attempts < max_attempts and not self._abort_connect:
                await asyncio.sleep(delay)
                delay = min(delay * 2, strategy.max_delay)

        self._set_state(ConnectionState.DISCONNECTED)
        if self._abort_connect:
            raise SessionError(f"Connection to {self.options.endpoint} abandoned, disconnect requested")
        raise ServerConnectionError(
            f"Failed to connect to {self.options.endpoint} after {max_attempts} attempts: {last_error}"
        )

    async def _open_session(self) -> Client:
        client = self._client_factory(url=self.options.endpoint)
        client.name = self.options.application_name
        client.description = self.options.application_name
        if self.options.username:
            client.set_user(self.options.username)
            client.set_password(self.options.password or "")

        try:
            async with asyncio.timeout(self.options.connect_timeout):
                await client.connect()
            self.logger.info("Session created.")

            if self.options.endpoint_must_exist:
                await self._verify_endpoint(client)
        except Exception:
            await self._close_quietly(client)
            raise
        return client

    async def _verify_endpoint(self, client: Client):
        endpoints = await client.get_endpoints()
        urls = [endpoint.EndpointUrl for endpoint in endpoints]
        if self.options.endpoint not in urls:
            raise ServerConnectionError(
                f"Endpoint {self.options.endpoint} is not advertised by the server: {urls}"
            )

    async def _close_quietly(self, client: Client):
        try:
            await client.disconnect()
        except Exception as e:
            self.logger.debug(f"Ignoring error while closing failed session: {e}")

    async def disconnect(self):
        """Release the session. Safe to call repeatedly or during teardown."""
        if self.state == ConnectionState.CONNECTING:
            # The pending connect() closes whatever it opens and gives up
            self.logger.info("Disconnect requested while connecting")
            self._abort_connect = True
            await self._connect_finished.wait()
            return

        task = self._disconnect_task
        if task is None:
            if self.state == ConnectionState.DISCONNECTED or self.client is None:
                return
            self._set_state(ConnectionState.DISCONNECTING)
            task = asyncio.ensure_future(self._teardown(self.client))
            self._disconnect_task = task
        await task

    async def _teardown(self, client: Client):
        self.logger.info("disconnecting from OPC UA Server")
        try:
            await asyncio.wait_for(client.disconnect(), timeout=self.options.connect_timeout)
            self.logger.info("Disconnected from OPC UA server")
        except asyncio.TimeoutError:
            self.logger.error("Disconnection from OPC UA server timed out")
        except Exception as e:
            self.logger.error(f"Error during disconnect: {e}")
        finally:
            self.client = None
            self._disconnect_task = None
            self._set_state(ConnectionState.DISCONNECTED)
