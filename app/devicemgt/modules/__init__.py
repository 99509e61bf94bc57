"""
Domain modules for the device management console.

Each module owns its models, service functions and (where it exposes pages) a blueprint.
"""
