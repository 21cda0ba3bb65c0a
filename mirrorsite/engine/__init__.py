"""
Engine Module - Cycle orchestration and scheduling.
"""
