"""
Handler Kit Models Package

Declarations, customization options, per-invocation state and the Pydantic
models used to shape error responses.
"""
