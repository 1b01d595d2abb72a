"""SafeTrail tourist safety service."""
