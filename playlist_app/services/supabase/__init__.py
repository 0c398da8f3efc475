"""Supabase persistence"""

from playlist_app.services.supabase.repo import SupabaseRepo

__all__ = ["SupabaseRepo"]
