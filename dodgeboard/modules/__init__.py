"""
Domain modules. Each subpackage owns one concern of the score pipeline.
"""
