"""
Relay core: lifecycle controller, shutdown signal and errors.
"""
