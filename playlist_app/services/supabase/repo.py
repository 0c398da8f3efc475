"""Supabase repository - tree store for channel playlists"""

import logging
from typing import Optional
from supabase import create_client, Client

from playlist_app.services.supabase.tree_ops import TreeOpsMixin
from playlist_app.services.supabase.channel_ops import ChannelOpsMixin

logger = logging.getLogger(__name__)


class SupabaseRepo(TreeOpsMixin, ChannelOpsMixin):
    """Async Supabase data access layer"""

    def __init__(
        self,
        url: str,
        key: str,
        playlists_table: str = "channel_playlists",
        channels_table: str = "channels",
        content_table: str = "content",
    ):
        logger.info(f"Initializing SupabaseRepo: url={url[:30]}...")
        self.url = url
        self.key = key
        self.playlists_table = playlists_table
        self.channels_table = channels_table
        self.content_table = content_table
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Lazy init Supabase client"""
        if self._client is None:
            logger.info("Creating Supabase client...")
            self._client = create_client(self.url, self.key)
            logger.info("Supabase client created")
        return self._client
