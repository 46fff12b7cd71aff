"""
Models package for On-Off Tracker
"""
