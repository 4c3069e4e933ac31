"""playgov: a rate-limit aware call governor for the Spotify Web API."""

__version__ = "0.1.0"
