"""Supabase Realtime client for channel_playlists changes using async client"""

import logging
from dataclasses import dataclass
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

logger = logging.getLogger(__name__)


@dataclass
class TreeChange:
    """Row change pushed by realtime"""

    event: str  # INSERT / UPDATE / DELETE
    node_id: Optional[str] = None
    parent_id: Optional[str] = None


class RealtimeClient(QObject):
    """
    Supabase Realtime client with Qt signals.

    Subscribes to every change of the playlists table and emits treeChanged
    on the main thread. The controller decides whether to refresh.
    """

    # Signals
    treeChanged = Signal(object)  # TreeChange
    connectionStatusChanged = Signal(bool)  # is_connected

    def __init__(self, supabase_url: str, supabase_key: str, table: str = "channel_playlists"):
        super().__init__()
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.table = table
        self._client = None
        self._channel = None
        self._connected = False

    async def connect(self) -> bool:
        """Connect and subscribe; returns True on success"""
        try:
            from supabase._async.client import create_client as acreate_client

            logger.info("Connecting to Supabase Realtime...")
            self._client = await acreate_client(self.supabase_url, self.supabase_key)
            await self._client.realtime.connect()

            self._channel = self._client.channel(f"{self.table}_changes")
            self._channel.on_postgres_changes(
                event="*",
                schema="public",
                table=self.table,
                callback=self._on_change,
            )
            await self._channel.subscribe()

            self._connected = True
            self.connectionStatusChanged.emit(True)
            logger.info(f"Supabase Realtime subscribed to {self.table}")
            return True

        except Exception as e:
            logger.error(f"Failed to connect to Supabase Realtime: {e}", exc_info=True)
            self._connected = False
            self.connectionStatusChanged.emit(False)
            return False

    async def disconnect(self):
        """Unsubscribe and close the async client"""
        try:
            if self._channel:
                await self._channel.unsubscribe()
                self._channel = None

            if self._client and self._client.realtime:
                await self._client.realtime.disconnect()
            self._client = None

            self._connected = False
            self.connectionStatusChanged.emit(False)
            logger.info("Realtime client disconnected")

        except Exception as e:
            logger.error(f"Error disconnecting Realtime: {e}", exc_info=True)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _on_change(self, payload: dict):
        """Called from the websocket side; forwards to the main thread"""
        try:
            data = payload.get("data", payload)
            event = data.get("type") or data.get("eventType") or payload.get("eventType") or "UNKNOWN"
            record = data.get("record") or data.get("new") or data.get("old_record") or data.get("old") or {}

            change = TreeChange(
                event=str(event).upper(),
                node_id=record.get("id"),
                parent_id=record.get("parent_id"),
            )
            logger.info(f"Realtime {change.event} on {self.table}: {change.node_id}")

            # Thread-safe emit using QTimer.singleShot to run in main thread
            QTimer.singleShot(0, lambda: self.treeChanged.emit(change))

        except Exception as e:
            logger.error(f"Error handling realtime change: {e}", exc_info=True)
