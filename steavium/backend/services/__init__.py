"""
Services orchestrating handlers into store-level operations.
"""
