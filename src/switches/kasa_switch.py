"""Switch driver for TP-Link Kasa/Tapo smart plugs and power strips."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from kasa import Discover

from src.switches.base import Switch, SwitchCollection
from src.switches.errors import SwitchError


logger = logging.getLogger(__name__)


class KasaDevice:
    """A connection to one Kasa/Tapo device shared by all of its outlets."""

    # Tapo devices can be slow to answer discovery
    DEFAULT_DISCOVERY_TIMEOUT = 30

    def __init__(self, ip_address: str, username: str, password: str,
                 discovery_timeout: float = DEFAULT_DISCOVERY_TIMEOUT):
        self.ip_address = ip_address
        self.username = username
        self.password = password
        self.discovery_timeout = discovery_timeout
        self.device = None
        self._lock = asyncio.Lock()

    async def connect(self):
        """Discover the device with Tapo credentials and fetch its initial state."""
        if self.device is not None:
            return

        logger.debug(f"Connecting to Kasa device at {self.ip_address} (timeout: {self.discovery_timeout}s)")
        try:
            device = await asyncio.wait_for(
                Discover.discover_single(
                    self.ip_address,
                    username=self.username,
                    password=self.password,
                ),
                timeout=self.discovery_timeout
            )
            await asyncio.wait_for(device.update(), timeout=self.discovery_timeout)
        except asyncio.TimeoutError as e:
            raise SwitchError(
                f"Timeout after {self.discovery_timeout}s while connecting to device at {self.ip_address}"
            ) from e
        except Exception as e:
            raise SwitchError(f"Failed to connect to device at {self.ip_address}: {type(e).__name__}: {e}") from e

        self.device = device
        model = getattr(device, 'model', 'Unknown')
        children = len(device.children) if getattr(device, 'children', None) else 0
        logger.info(f"Connected to Kasa device at {self.ip_address}: model={model}, outlets={children}")

    def _target(self, outlet: Optional[int]):
        if outlet is None:
            return self.device
        children = getattr(self.device, 'children', None) or []
        if outlet >= len(children):
            raise SwitchError(
                f"Outlet index {outlet} out of range for {self.ip_address} (device has {len(children)} outlets)"
            )
        return children[outlet]

    async def set_power(self, outlet: Optional[int], on: bool):
        async with self._lock:
            await self.connect()
            try:
                await self.device.update()
                target = self._target(outlet)
                if bool(target.is_on) != on:
                    if on:
                        await target.turn_on()
                    else:
                        await target.turn_off()
            except SwitchError:
                raise
            except Exception as e:
                action = 'on' if on else 'off'
                raise SwitchError(f"Failed to turn {action} {self.ip_address} outlet {outlet}: {e}") from e

    async def get_power(self, outlet: Optional[int]) -> bool:
        async with self._lock:
            await self.connect()
            try:
                await self.device.update()
                return bool(self._target(outlet).is_on)
            except SwitchError:
                raise
            except Exception as e:
                raise SwitchError(f"Failed to get state of {self.ip_address} outlet {outlet}: {e}") from e

    async def close(self):
        if self.device is not None:
            disconnect = getattr(self.device, 'disconnect', None)
            if disconnect is not None:
                try:
                    await disconnect()
                except Exception as e:
                    logger.warning(f"Error closing device at {self.ip_address}: {e}")
            self.device = None


class KasaSwitch(Switch):
    """A whole Kasa device, or one outlet of a power strip."""

    def __init__(self, device: KasaDevice, outlet: Optional[int] = None):
        self.device = device
        self.outlet = outlet

    def __str__(self) -> str:
        if self.outlet is None:
            return f"kasa:{self.device.ip_address}"
        return f"kasa:{self.device.ip_address}/{self.outlet}"

    async def turn_on(self):
        await self.device.set_power(self.outlet, True)

    async def turn_off(self):
        await self.device.set_power(self.outlet, False)

    async def get_state(self) -> bool:
        return await self.device.get_power(self.outlet)


class KasaSwitchCollection(SwitchCollection):
    """Switches backed by Kasa/Tapo devices, one per configured device or outlet."""

    def __init__(self, devices: List[Dict[str, Any]], username: str, password: str,
                 discovery_timeout: float = KasaDevice.DEFAULT_DISCOVERY_TIMEOUT):
        """
        Initialize the collection.

        Args:
            devices: Entries with 'ip_address' and optional 'outlet'
            username: Tapo account username
            password: Tapo account password
            discovery_timeout: Seconds to wait for discovery of each device
        """
        self._devices: Dict[str, KasaDevice] = {}
        self.switches: List[KasaSwitch] = []
        for entry in devices:
            ip = entry['ip_address']
            if ip not in self._devices:
                self._devices[ip] = KasaDevice(ip, username, password, discovery_timeout)
            self.switches.append(KasaSwitch(self._devices[ip], entry.get('outlet')))

    def __str__(self) -> str:
        return f"kasa switch collection with {len(self.switches)} switches"

    def list_switches(self) -> List[Switch]:
        return list(self.switches)

    async def init(self):
        """Connect to every device; unreachable devices are retried on first use."""
        logger.info(f"Initializing {len(self._devices)} Kasa device(s)")
        for ip, device in self._devices.items():
            try:
                await device.connect()
            except SwitchError as e:
                logger.error(f"  ✗ {e}")

    async def close(self):
        for device in self._devices.values():
            await device.close()
