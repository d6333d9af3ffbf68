"""Location providers used by the presence workflow.

A provider answers two questions: may we read the device location, and
where is the device right now. The workflow owns timeouts, so providers
may block for as long as the underlying source does.
"""

import asyncio
import enum
import logging
import threading
from dataclasses import dataclass

from socketio.exceptions import TimeoutError as CallTimeout

from dispatch.presence.errors import LocationUnavailable, InvalidLocation

logger = logging.getLogger(__name__)


def _settle(future, setter, value):
    if not future.done():
        setter(value)


class AccuracyMode(str, enum.Enum):
    BALANCED = 'balanced'
    HIGH = 'high'


@dataclass(frozen=True)
class LocationFix:
    latitude: float
    longitude: float
    accuracy: float  # radius of uncertainty in meters

    @classmethod
    def from_dict(cls, data):
        """Build a fix from a JSON payload.

        Raises:
            ValueError: if a coordinate is missing, not numeric, or out of range
        """
        try:
            latitude = float(data['latitude'])
            longitude = float(data['longitude'])
            accuracy = float(data['accuracy'])
        except (KeyError, TypeError, ValueError):
            raise ValueError('Invalid latitude/longitude/accuracy format')

        if latitude < -90 or latitude > 90:
            raise ValueError('latitude must be between -90 and 90')
        if longitude < -180 or longitude > 180:
            raise ValueError('longitude must be between -180 and 180')
        if accuracy < 0:
            raise ValueError('accuracy must not be negative')

        return cls(latitude=latitude, longitude=longitude, accuracy=accuracy)

    def to_dict(self):
        return {
            'latitude': self.latitude,
            'longitude': self.longitude,
            'accuracy': self.accuracy,
        }


class LocationProvider:
    """Interface every location source implements."""

    async def request_permission(self):
        """Return True when the device location may be read."""
        raise NotImplementedError

    async def get_current_position(self, mode):
        """Return a LocationFix or raise LocationUnavailable."""
        raise NotImplementedError


class ReportedLocationProvider(LocationProvider):
    """Serves a fix that the device acquired itself and sent along.

    The payload is the request body of a confirm/complete call:
    ``{"latitude", "longitude", "accuracy"}``, optionally with
    ``"permission": "denied"`` or an ``"error"`` string from the device.
    """

    def __init__(self, payload):
        self.payload = payload or {}
        self.requested_modes = []

    async def request_permission(self):
        return self.payload.get('permission', 'granted') != 'denied'

    async def get_current_position(self, mode):
        self.requested_modes.append(AccuracyMode(mode))
        if self.payload.get('error'):
            raise LocationUnavailable(timed_out=self.payload.get('error') == 'timeout')
        try:
            return LocationFix.from_dict(self.payload)
        except ValueError as e:
            raise InvalidLocation(str(e))


class SocketLocationProvider(LocationProvider):
    """Asks a connected device for its location over Socket.IO.

    Uses ``socketio.call`` which blocks until the client acknowledges, so
    each request runs on its own daemon thread. Nothing joins that thread:
    if the workflow gives up first, the event loop can close right away and
    the thread's late reply is dropped.
    """

    def __init__(self, socketio, sid, call_timeout=60):
        self.socketio = socketio
        self.sid = sid
        self.call_timeout = call_timeout

    async def _call(self, event, data):
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        def run():
            try:
                reply = self.socketio.call(event, data, to=self.sid, timeout=self.call_timeout)
            except Exception as e:
                settle = (future.set_exception, e)
            else:
                settle = (future.set_result, reply)
            try:
                loop.call_soon_threadsafe(_settle, future, *settle)
            except RuntimeError:
                logger.debug(f'Dropped {event} reply from {self.sid}: event loop already closed')

        threading.Thread(target=run, name=f'socket-call:{event}', daemon=True).start()
        return await future

    async def request_permission(self):
        try:
            reply = await self._call('location_permission', {})
        except CallTimeout:
            logger.warning(f'Device {self.sid} did not answer the permission request')
            return False
        return bool(reply) and reply.get('status') == 'granted'

    async def get_current_position(self, mode):
        try:
            reply = await self._call('request_location', {'accuracy': AccuracyMode(mode).value})
        except CallTimeout:
            raise LocationUnavailable(timed_out=True)

        if not reply or reply.get('error'):
            logger.info(f"Device {self.sid} reported a location error: {(reply or {}).get('error')}")
            raise LocationUnavailable()

        try:
            return LocationFix.from_dict(reply)
        except ValueError as e:
            logger.warning(f'Device {self.sid} sent a malformed fix: {e}')
            raise LocationUnavailable()
