"""
Client runtime: local persistence, remote sync, and the game session that owns them.
"""
