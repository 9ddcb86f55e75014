"""guild-jukebox: per-guild audio playback for Discord."""
