"""Spotify Web API boundary adapter."""
