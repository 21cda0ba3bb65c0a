"""
Site Module - Full and minimal builds of the served artifact tree.
"""
