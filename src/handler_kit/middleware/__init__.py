"""
Middleware pipeline: phased steps, default steps, customization and combinator.
"""
