"""Channel playlists host: Supabase persistence, realtime refresh, gesture controller"""
