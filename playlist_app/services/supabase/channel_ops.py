"""Channel definitions and content bucket lookups"""

import asyncio
import logging

from playlist_core.exceptions import ServiceError
from playlist_core.models import Channel, ContentRef

logger = logging.getLogger(__name__)


class ChannelOpsMixin:
    """Mixin for the tables the tree only references; TreeController uses it as its ChannelCatalog"""

    playlists_table: str = "channel_playlists"
    channels_table: str = "channels"
    content_table: str = "content"

    async def fetch_channels(self) -> list[Channel]:
        """Channel definitions a channel node can link to"""

        def _sync_fetch():
            client = self._get_client()
            response = client.table(self.channels_table).select("*").order("created_at").execute()
            return [Channel(**row) for row in response.data]

        try:
            return await asyncio.to_thread(_sync_fetch)
        except Exception as e:
            logger.error(f"fetch_channels failed: {e}", exc_info=True)
            raise ServiceError(f"Failed to fetch channels: {e}") from e

    async def check_channel_usage(self, channel_id: str) -> int:
        """Number of channel nodes linked to channel_id"""

        def _sync_count():
            client = self._get_client()
            response = (
                client.table(self.playlists_table)
                .select("id", count="exact")
                .eq("channel_id", channel_id)
                .execute()
            )
            if response.count is not None:
                return response.count
            return len(response.data or [])

        try:
            count = await asyncio.to_thread(_sync_count)
        except Exception as e:
            logger.error(f"check_channel_usage {channel_id} failed: {e}", exc_info=True)
            raise ServiceError(f"Failed to check usage of channel {channel_id}: {e}") from e
        logger.info(f"Channel {channel_id} used by {count} node(s)")
        return count

    async def fetch_content_buckets(self) -> list[ContentRef]:
        """Content buckets offered when remapping a pasted channel"""

        def _sync_fetch():
            client = self._get_client()
            response = (
                client.table(self.content_table)
                .select("id, name, schedule")
                .eq("type", "bucket")
                .order("name")
                .execute()
            )
            return [ContentRef(**row) for row in response.data]

        try:
            return await asyncio.to_thread(_sync_fetch)
        except Exception as e:
            logger.error(f"fetch_content_buckets failed: {e}", exc_info=True)
            raise ServiceError(f"Failed to fetch content buckets: {e}") from e
