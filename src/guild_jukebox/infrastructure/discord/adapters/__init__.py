"""Discord voice adapter."""
