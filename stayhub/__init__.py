"""StayHub payments service."""
