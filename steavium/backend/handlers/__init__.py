"""
Handlers wrapping a single external concern (files, processes, registry,
config) used by the services layer.
"""
