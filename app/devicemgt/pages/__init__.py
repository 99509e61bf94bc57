"""
Page controllers: assemble view-models for templates from request context and collaborators.
"""
