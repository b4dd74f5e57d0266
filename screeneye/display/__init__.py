"""On-screen overlay and alert tone output."""
