"""
Test suite for the TalkBack relay.

This package contains tests organized by type:
- Unit tests for individual components
- Integration tests running a real relay server
- Shared fixtures and helpers
"""
