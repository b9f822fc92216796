"""Dailymotion search, extraction and HLS streaming service."""
