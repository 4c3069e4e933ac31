"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the Spotify Web API,
configuration files, the console) by implementing the interfaces defined
in the domain layer. Also hosts the call governor.
"""
