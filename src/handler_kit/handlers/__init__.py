"""
Handler wrapper and the utilities it relies on (errors, environment, observability).
"""
