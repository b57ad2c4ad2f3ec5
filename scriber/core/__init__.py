"""
Core package for Scriber.
Configuration, database and security primitives.
"""
