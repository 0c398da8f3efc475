"""channel_playlists operations for Supabase repository"""

import asyncio
import logging
from typing import Any

from playlist_core.exceptions import ServiceError
from playlist_core.models import NewNodeFields, TreeNode

logger = logging.getLogger(__name__)


class TreeOpsMixin:
    """Mixin implementing the tree store on the playlists table"""

    playlists_table: str = "channel_playlists"

    async def fetch_all(self) -> list[TreeNode]:
        """Fetch every node as a flat list (parent links, no children)"""

        def _sync_fetch():
            client = self._get_client()
            response = client.table(self.playlists_table).select("*").order("order").execute()
            return [TreeNode(**row) for row in response.data]

        try:
            nodes = await asyncio.to_thread(_sync_fetch)
        except Exception as e:
            logger.error(f"fetch_all failed: {e}", exc_info=True)
            raise ServiceError(f"Failed to fetch {self.playlists_table}: {e}") from e
        logger.info(f"fetch_all: {len(nodes)} rows")
        return nodes

    async def create_node(self, fields: NewNodeFields) -> str:
        """Insert one row and return the id assigned by the database"""
        record = fields.to_record()

        def _sync_insert():
            client = self._get_client()
            response = client.table(self.playlists_table).insert(record).execute()
            if not response.data:
                raise ServiceError(f"Insert into {self.playlists_table} returned no row")
            return str(response.data[0]["id"])

        try:
            node_id = await asyncio.to_thread(_sync_insert)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"create_node failed for '{fields.name}': {e}", exc_info=True)
            raise ServiceError(f"Failed to create {fields.node_type.value} '{fields.name}': {e}") from e
        logger.info(f"Created {fields.node_type.value} '{fields.name}' -> {node_id}")
        return node_id

    async def update_node(self, node_id: str, fields: dict[str, Any]) -> None:
        """Partial update of one row"""
        data = {key: value for key, value in fields.items() if key not in ("id", "children")}
        if not data:
            return

        def _sync_update():
            client = self._get_client()
            client.table(self.playlists_table).update(data).eq("id", node_id).execute()

        try:
            await asyncio.to_thread(_sync_update)
        except Exception as e:
            logger.error(f"update_node {node_id} failed: {e}", exc_info=True)
            raise ServiceError(f"Failed to update {node_id}: {e}") from e
        logger.debug(f"Updated {node_id}: {sorted(data)}")

    async def batch_delete(self, node_ids: list[str]) -> None:
        """Delete rows by id (children included by the caller)"""
        if not node_ids:
            return

        def _sync_delete():
            client = self._get_client()
            client.table(self.playlists_table).delete().in_("id", node_ids).execute()

        try:
            await asyncio.to_thread(_sync_delete)
        except Exception as e:
            logger.error(f"batch_delete of {len(node_ids)} rows failed: {e}", exc_info=True)
            raise ServiceError(f"Failed to delete {len(node_ids)} node(s): {e}") from e
        logger.info(f"Deleted {len(node_ids)} rows")
