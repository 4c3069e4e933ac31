"""Domain Event definitions.

Represents significant occurrences in the life of a governed task that
other parts of the system might react to.
"""
