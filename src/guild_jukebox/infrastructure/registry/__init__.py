"""Session registry implementations."""
