"""Local video-course player: folder import, watch progress and settings."""
