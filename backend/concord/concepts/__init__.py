"""Concepts — components owned by the engine itself.

Invariants:
    - Only boundary components live here; application components are
      registered by the host application (see main.create_app)
"""
