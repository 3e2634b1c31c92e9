"""Agent module - intake wizard and its parts.

Import submodules directly (``disputai.agent.controller``); the intake tools
depend on ``disputai.agent.schema``, so this package does not import them eagerly.
"""
