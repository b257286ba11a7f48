from __future__ import annotations

import logging
import platform
import threading
from typing import Optional, Protocol

from ..core.constants import DEFAULT_LOCATION_TIMEOUT_SECONDS
from ..core.enums import DeviceState
from ..core.exceptions import LocationUnavailableError
from .model import DeviceContext, DeviceInfo, DeviceLocation

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    def current_location(self, *, timeout: float) -> DeviceLocation:
        """Return the current position or raise ``LocationUnavailableError``."""

        raise NotImplementedError


class StaticLocationProvider:
    """Fixed coordinates configured for a kiosk installed at the school."""

    def __init__(self, latitude: Optional[float], longitude: Optional[float], accuracy: Optional[float] = None):
        self._latitude = latitude
        self._longitude = longitude
        self._accuracy = accuracy

    def current_location(self, *, timeout: float) -> DeviceLocation:
        if self._latitude is None or self._longitude is None:
            raise LocationUnavailableError("Location permission denied")
        return DeviceLocation(latitude=self._latitude, longitude=self._longitude, accuracy=self._accuracy)


def local_device_info(app_version: str) -> DeviceInfo:
    return DeviceInfo(
        device_id=platform.machine() or platform.node() or "unknown",
        platform=platform.system().lower() or "unknown",
        os_version=platform.release() or "unknown",
        app_version=app_version,
    )


class DeviceContextResolver:
    """Resolves location + device info once per mount.

    Resolution may take seconds; check-in/out stay unavailable until it
    succeeds. A failure is kept as ``error`` until ``resolve`` is called again.
    """

    def __init__(
        self,
        locations: LocationProvider,
        *,
        app_version: str = "1.0.0",
        timeout: float = DEFAULT_LOCATION_TIMEOUT_SECONDS,
    ):
        self._locations = locations
        self._app_version = app_version
        self._timeout = float(timeout)
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._state = DeviceState.PENDING
        self._context: Optional[DeviceContext] = None
        self._error: Optional[str] = None

    @property
    def state(self) -> DeviceState:
        with self._lock:
            return self._state

    @property
    def context(self) -> Optional[DeviceContext]:
        with self._lock:
            return self._context

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    def resolve(self) -> Optional[DeviceContext]:
        with self._lock:
            self._state = DeviceState.PENDING
            self._context = None
            self._error = None
            self._done.clear()
        try:
            location = self._locations.current_location(timeout=self._timeout)
        except LocationUnavailableError as e:
            logger.warning("device location unavailable", extra={"error": str(e)})
            with self._lock:
                self._state = DeviceState.FAILED
                self._error = str(e) or "Failed to get location"
            self._done.set()
            return None

        context = DeviceContext(location=location, info=local_device_info(self._app_version))
        with self._lock:
            self._state = DeviceState.RESOLVED
            self._context = context
        self._done.set()
        return context

    def resolve_async(self) -> threading.Thread:
        thread = threading.Thread(target=self.resolve, name="device-context", daemon=True)
        thread.start()
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)
