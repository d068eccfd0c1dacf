"""
DAP Core - Codecs, auction state machine, directory and session.
"""
