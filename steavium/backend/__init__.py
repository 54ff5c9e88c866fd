"""
Steavium backend: handlers, models and services shared by every store client.
"""
