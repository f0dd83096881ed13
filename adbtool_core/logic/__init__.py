"""
Domain layer for the adb tool core.
"""
