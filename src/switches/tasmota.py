"""Switch driver for Tasmota HTTP relays."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from src.switches.base import Switch, SwitchCollection
from src.switches.errors import SwitchError


logger = logging.getLogger(__name__)


class TasmotaSwitch(Switch):
    """
    A single Tasmota relay controlled over its HTTP command API.

    A relay that fails a request is marked disabled; while disabled, on/off
    requests fail immediately until a successful probe re-enables it.
    """

    def __init__(self, address: str, timeout: float = 5.0):
        """
        Initialize a Tasmota switch.

        Args:
            address: Host or URL of the relay (http:// is assumed if missing)
            timeout: Per-request timeout in seconds
        """
        if not address.startswith('http://') and not address.startswith('https://'):
            address = f"http://{address}"
        self.address = address.rstrip('/')
        self.timeout = timeout
        self.disabled = False

    def __str__(self) -> str:
        return f"TasmotaSwitch({self.address})"

    def is_disabled(self) -> bool:
        return self.disabled

    def mark_disabled(self):
        if not self.disabled:
            self.disabled = True
            logger.warning(f"Switch {self.address} marked as disabled due to network connectivity issues")

    def mark_enabled(self):
        if self.disabled:
            self.disabled = False
            logger.info(f"Switch {self.address} re-enabled after network connectivity restored")

    async def send_command(self, command: str) -> Dict[str, Any]:
        """
        Send a command to the relay.

        Args:
            command: Tasmota command, e.g. "Power ON"

        Returns:
            Decoded JSON response

        Raises:
            SwitchError: On HTTP, timeout or decoding failures
        """
        endpoint = f"{self.address}/cm"
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    endpoint,
                    params={'cmnd': command},
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        raise SwitchError(f"HTTP request to {self.address} failed with status {response.status}")
                    return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise SwitchError(f"Failed to send HTTP request to {self.address}: {e}") from e
        except asyncio.TimeoutError as e:
            raise SwitchError(f"Request to {self.address} timed out after {self.timeout}s") from e
        except ValueError as e:
            raise SwitchError(f"Failed to parse JSON response from {self.address}: {e}") from e

    async def _power(self, command: str) -> Dict[str, Any]:
        try:
            response = await self.send_command(command)
        except SwitchError:
            self.mark_disabled()
            raise
        self.mark_enabled()
        return response

    async def turn_on(self):
        if self.disabled:
            raise SwitchError(f"Switch {self.address} is disabled due to network issues")
        await self._power('Power ON')

    async def turn_off(self):
        if self.disabled:
            raise SwitchError(f"Switch {self.address} is disabled due to network issues")
        await self._power('Power OFF')

    async def get_state(self) -> bool:
        response = await self._power('Power')
        return response.get('POWER') == 'ON'


class TasmotaSwitchCollection(SwitchCollection):
    """A collection of Tasmota relays with background reachability monitoring."""

    MONITOR_INTERVAL_SECONDS = 30

    def __init__(self, addresses: List[str], timeout: float = 5.0):
        self.switches: List[TasmotaSwitch] = [TasmotaSwitch(addr, timeout) for addr in addresses]
        self._monitor_task: Optional[asyncio.Task] = None

    def __str__(self) -> str:
        return f"tasmota switch collection with {len(self.switches)} switches"

    def list_switches(self) -> List[Switch]:
        return list(self.switches)

    async def get_detailed_state(self) -> List[bool]:
        """Get member states; disabled or failing relays are reported as off."""
        states = []
        for sw in self.switches:
            if sw.is_disabled():
                states.append(False)
                continue
            try:
                states.append(await sw.get_state())
            except SwitchError as e:
                logger.warning(f"Reporting {sw} as off: {e}")
                states.append(False)
        return states

    async def init(self):
        """Probe every relay once and start the monitor."""
        logger.info(f"Initializing Tasmota switch collection with {len(self.switches)} switches")
        for sw in self.switches:
            try:
                await sw.send_command('Power')
                logger.info(f"Switch {sw.address} is reachable and ready")
            except SwitchError as e:
                logger.warning(f"Switch {sw.address} unreachable during initialization: {e}")
                sw.mark_disabled()

        if self._monitor_task is None:
            self._monitor_task = asyncio.create_task(self._monitor_loop())
            logger.info(f"Started background monitoring for Tasmota switches (every {self.MONITOR_INTERVAL_SECONDS}s)")

    async def close(self):
        if self._monitor_task and not self._monitor_task.done():
            logger.info("Stopping Tasmota switch monitoring")
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
        self._monitor_task = None

    async def check_disabled_switches(self) -> int:
        """
        Re-probe disabled relays and re-enable the ones that answer.

        Returns:
            Number of relays that were disabled before the check
        """
        disabled = [sw for sw in self.switches if sw.is_disabled()]
        for sw in disabled:
            try:
                await sw.send_command('Power')
                sw.mark_enabled()
            except SwitchError as e:
                logger.debug(f"Switch {sw.address} still unreachable: {e}")
        if disabled:
            logger.info(f"Monitoring check: {len(disabled)} disabled switch(es) found")
        return len(disabled)

    async def _monitor_loop(self):
        while True:
            await asyncio.sleep(self.MONITOR_INTERVAL_SECONDS)
            await self.check_disabled_switches()
