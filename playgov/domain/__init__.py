"""Domain Layer: models, errors, events and ports.

Has no dependencies on the infrastructure layer.
"""
