"""
Framework layer: configuration management.
"""
