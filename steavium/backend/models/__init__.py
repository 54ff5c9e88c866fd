"""
Data models for Steavium.
"""
