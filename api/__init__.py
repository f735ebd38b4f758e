"""
Relay API Layer.
"""
