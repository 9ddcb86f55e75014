"""Centralized message constants for error messages, log templates, and user feedback."""

from __future__ import annotations


class ErrorMessages:
    """Error messages for exceptions and validation failures."""

    INVALID_SNOWFLAKE = "Discord snowflake ID must be positive"
    EMPTY_QUERY = "Query cannot be empty"
    QUEUE_FULL = "Queue is full (max {max_size} tracks)"
    INVALID_LOG_LEVEL = "Invalid log level: {level}. Must be one of {valid_levels}"

    # Resolution
    SPOTIFY_NOT_CONFIGURED = "Spotify credentials are not configured"
    SPOTIFY_PLAYLIST_EMPTY = "Spotify playlist is empty"
    SPOTIFY_INVALID_TRACK = "Spotify track has no name or artist"
    SPOTIFY_UNSUPPORTED_URL = "Unsupported Spotify URL"
    YOUTUBE_PLAYLIST_EMPTY = "Playlist is empty or private"
    YOUTUBE_PLAYLIST_ID_MISSING = "Playlist ID not found in URL"
    YOUTUBE_API_KEY_MISSING = "YouTube API key is not configured"
    NO_VIDEO_FOUND = "No video found for: {query}"

    # Download pipeline
    FETCH_SPAWN_FAILED = "could not start {executable}: {error}"
    DECODE_SPAWN_FAILED = "could not start {executable}: {error}"
    NO_AUDIO_PRODUCED = "no audio produced (fetch exit code {code}): {diagnostics}"
    FIRST_AUDIO_TIMEOUT = "no audio within {timeout}s"

    # Voice
    NOT_CONNECTED = "Not connected to voice in guild {guild_id}"

    DISCORD_TOKEN_REQUIRED = "DISCORD_TOKEN environment variable is required"
    EXECUTABLE_NOT_FOUND = "Required executable %r (%s) was not found on PATH"
    BOT_NOT_INITIALIZED = "Bot not initialized. Call set_bot() first."


class LogTemplates:
    """Log message templates.

    Use these with logger.info(), logger.error(), etc. and pass values as
    parameters so formatting is deferred to the logging framework.
    """

    # Voice/connection
    VOICE_CONNECTED = "Connected to voice channel %s in %s"
    VOICE_DISCONNECTED = "Disconnected from voice in guild %s"
    VOICE_MOVED = "Moved to voice channel %s"
    VOICE_CONNECTING = "Connecting to voice channel %s in guild %s"
    VOICE_CONNECTION_TIMEOUT = "Timeout waiting for voice readiness on channel %s"
    VOICE_MOVE_TIMEOUT = "Timeout moving to channel %s"
    VOICE_NO_PERMISSION = "No permission to connect to channel %s"
    VOICE_CLIENT_ERROR = "Client error connecting: %r"
    VOICE_STALE_CLEANUP = "Found stale voice client in guild %s, cleaning up"
    VOICE_NOT_CONNECTED = "Not connected to voice in guild %s"
    VOICE_CLEANUP_ERROR = "Error during voice cleanup in guild %s: %r"
    VOICE_RECOVERY_STARTED = "Voice connection dropped in guild %s, waiting %ss for recovery"
    VOICE_RECOVERY_IN_FLIGHT = "Voice recovery already in flight for guild %s"
    VOICE_RECOVERED = "Voice connection recovered in guild %s"
    VOICE_RECOVERY_FAILED = "Voice connection did not recover in guild %s, destroying"
    VOICE_STATE_CHANGED = "Voice state for guild %s: %s -> %s"
    GUILD_NOT_FOUND = "Guild %s not found"
    CHANNEL_NOT_VOICE = "Channel %s is not a voice channel"

    # Download pipeline
    PIPELINE_OPENING = "Opening download pipeline for %s"
    PIPELINE_READY = "Download pipeline producing audio for %s"
    PIPELINE_FAILED = "Download pipeline failed for %s: %s"
    PIPELINE_UNEXPECTED_ERROR = "Unexpected error opening download pipeline for %s"
    PIPELINE_CLOSED = "Closed download pipeline for %s"
    PIPELINE_KILL_ERROR = "Error terminating %s process: %r"
    PIPELINE_PROGRESS = "Download progress for %s: %.1f%%"
    PIPELINE_PROGRESS_SINK_ERROR = "Progress sink raised for %s"

    # Resolution
    RESOLVING = "Resolving query %r"
    RESOLVED = "Resolved %r to %d track(s)"
    RESOLUTION_FAILED = "Resolution failed for %r: %s"
    SPOTIFY_TOKEN_REFRESHED = "Spotify access token refreshed (expires in %ss)"
    SPOTIFY_TOKEN_REFRESH_FAILED = "Spotify token refresh failed: %r"
    SPOTIFY_REFRESHER_STARTED = "Spotify token refresher started (every %s minutes)"
    SPOTIFY_REFRESHER_STOPPED = "Spotify token refresher stopped"
    SPOTIFY_ITEM_NO_MATCH = "No video match for Spotify track %r, skipping"
    SPOTIFY_ITEM_FAILED = "Failed to resolve Spotify track %r: %r"
    YOUTUBE_API_SEARCH_FAILED = "YouTube API search failed for %r, falling back to yt-dlp: %r"
    YOUTUBE_API_SEARCH_EMPTY = "YouTube API search returned nothing for %r, falling back to yt-dlp"
    YOUTUBE_DURATIONS_FAILED = "Failed to fetch playlist durations: %r"
    YTDLP_FAILED_EXTRACT_INFO = "Failed to extract info from %s"
    YTDLP_FAILED_SEARCH = "yt-dlp search failed for %r"

    # Playback state machine
    STATE_TRANSITION = "Guild %s: %s --%s--> %s"
    STATE_EVENT_IGNORED = "Guild %s: event %s ignored in state %s"
    PLAYBACK_DOWNLOADING = "Downloading '%s' in guild %s"
    PLAYBACK_STARTED = "Started playing '%s' in guild %s"
    PLAYBACK_STOPPED = "Stopped playback in guild %s"
    PLAYBACK_ENGINE_ERROR = "Playback engine error in guild %s: %r"
    PLAYBACK_ATTACH_FAILED = "Failed to attach stream in guild %s: %r"
    PLAYBACK_STALE_CALLBACK = "Ignoring stale track-end callback in guild %s (token %s != %s)"
    PLAYBACK_CALLBACK_ERROR = "Error handling track end in guild %s"
    PLAYBACK_DISPATCH_ERROR = "Error handling %s in guild %s"
    PLAYBACK_VOICE_DROP_IGNORED = "Ignoring voice drop in guild %s: already disconnected"
    PLAYBACK_RETRY_SCHEDULED = "Retrying playback in guild %s in %.1fs"
    PLAYBACK_RETRY_CANCELLED = "Cancelled pending retry in guild %s"
    TRACK_FINISHED = "Track finished: %s in guild %s"
    TRACK_SKIPPED = "Skipped track: %s in guild %s"
    TRACK_DROPPED = "Dropped track '%s' in guild %s after failure"
    ARTIFACT_DELETED = "Deleted temporary artifact %s"
    ARTIFACT_DELETE_FAILED = "Failed to delete temporary artifact %s: %r"

    # Queue
    QUEUE_ENQUEUED = "Enqueued %d track(s) in guild %s (queue length %d)"
    QUEUE_ABANDONED = "Discarded %d resolved track(s) in guild %s: stopped or disconnected during lookup"
    QUEUE_EMPTY = "Queue empty in guild %s, going idle"
    QUEUE_CLEARED = "Cleared %s tracks from queue in guild %s"
    REPEAT_MODE_CHANGED = "Repeat mode changed to %s in guild %s"

    # Sessions
    SESSION_CREATED = "Created playback session for guild %s"
    SESSION_REMOVED = "Removed playback session for guild %s"

    # Application lifecycle
    BOT_STARTING = "Starting guild-jukebox in {environment} mode"
    BOT_SETUP = "Setting up bot..."
    BOT_CONTAINER_INITIALIZED = "Container initialized successfully"
    BOT_CONTAINER_INIT_FAILED = "Failed to initialize container: %s"
    BOT_SETUP_COMPLETE = "Bot setup complete"
    BOT_STARTING_RUN = "Starting bot..."
    BOT_STOPPED = "Bot stopped successfully"
    BOT_KEYBOARD_INTERRUPT = "Received keyboard interrupt, shutting down..."
    BOT_FATAL_ERROR = "Fatal error: %s"
    LOGGING_CONFIG_FALLBACK = "Could not load %s (%s), falling back to basic config"
    BOT_SHUTTING_DOWN = "Shutting down bot..."
    BOT_SHUTDOWN_TIMEOUT = "Shutdown did not finish within %ss"
    BOT_CONTAINER_SHUTDOWN = "Container shutdown complete"
    BOT_CONTAINER_SHUTDOWN_ERROR = "Error during container shutdown: %s"
    BOT_SHUTDOWN_COMPLETE = "Bot shutdown complete"
    BOT_READY = "Bot ready as %s (%s)"
    BOT_CONNECTED_GUILDS = "Connected to %s guilds"
    BOT_COG_LOADED = "Loaded cog: %s"
    BOT_COG_LOAD_FAILED = "Failed to load cog %s: %s"
    BOT_SYNCED_GUILD = "Synced %s commands to guild %s"
    BOT_SYNC_GUILD_FAILED = "Failed to sync to guild %s: %s"
    BOT_SYNCED_GLOBAL = "Synced %s commands globally"
    BOT_SYNC_GLOBAL_FAILED = "Failed to sync commands globally: %s"
    BOT_SLASH_COMMAND_ERROR = "Slash command error in '%s': %s"
    BOT_ERROR_MESSAGE_SEND_FAILED = "Failed to send error message to user"


class DiscordUIMessages:
    """User-facing Discord messages.

    These strings are shown directly to users in Discord interactions.
    """

    STATE_NEED_TO_BE_IN_VOICE = "Join a voice channel first!"
    STATE_SERVER_ONLY = "This command can only be used in a server."
    STATE_NOTHING_PLAYING = "Nothing is playing right now."
    STATE_QUEUE_EMPTY = "The queue is empty."

    ERROR_COULD_NOT_JOIN_VOICE = "I couldn't join your voice channel."
    ERROR_TRACK_NOT_FOUND = "⚠️ Couldn't find anything playable for: {query}"
    ERROR_OCCURRED = "❌ An error occurred: {error}"

    ACTION_QUEUED_ONE = "✅ Added to queue: **{title}** [{duration}]"
    ACTION_QUEUED_MANY = "✅ Added {count} tracks to the queue! First: **{title}**"
    ACTION_PLAY_CANCELLED = "⏹️ Playback was stopped before your request could be queued."
    ACTION_SKIPPED = "⏭️ Skipped: **{title}**"
    ACTION_STOPPED = "⏹️ Stopped playback and cleared the queue."
    ACTION_DISCONNECTED = "👋 Disconnected from the voice channel."
    ACTION_REPEAT_SET = "{emoji} Repeat mode set to **{mode}**."

    EMBED_NOW_PLAYING = "🎵 Now Playing"
    EMBED_QUEUE = "📋 Queue ({count} tracks)"
    EMBED_HELP = "🎵 Commands"
    FIELD_DURATION = "Duration"
    FIELD_REPEAT = "Repeat"
    QUEUE_MORE = "…and {count} more"


class EmojiConstants:
    """Emoji constants for consistent visual feedback."""

    REPEAT_OFF = "➡️"
    REPEAT_SINGLE = "🔂"
    REPEAT_ALL = "🔁"
    MUSIC_NOTE = "🎵"
