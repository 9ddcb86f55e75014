"""
Application Layer

Orchestrates domain objects and infrastructure ports.

Structure:
- services/: the playback application service and its DTOs
- interfaces/: port interfaces for infrastructure adapters
"""
