"""
Core task engine logic: registry, execution context, executor, chunking,
and the built-in task handlers.
"""
