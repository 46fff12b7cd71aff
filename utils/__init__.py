"""
Utilities package for On-Off Tracker
"""
