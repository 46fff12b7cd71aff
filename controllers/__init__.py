"""
Controllers package for On-Off Tracker
"""

from controllers.command_controller import CommandController
from controllers.stats_controller import create_app, create_stats_router
from controllers.tracking_view import TrackingView

__all__ = ["CommandController", "TrackingView", "create_app", "create_stats_router"]
