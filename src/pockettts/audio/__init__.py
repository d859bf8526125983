"""Audio file helpers and playback."""
