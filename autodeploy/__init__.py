"""
autodeploy: turn a git repository into a running container.
"""
__version__ = "1.0.0"
