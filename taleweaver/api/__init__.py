"""
HTTP surface for the TaleWeaver story service.
"""
