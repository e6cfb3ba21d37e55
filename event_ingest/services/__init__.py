"""
Batch stages and orchestration for the event pipeline.
"""
