"""
Tracking View
Pause/Resume/Stop buttons attached to session replies
"""

from typing import Iterable, Optional

import discord

from models.tracking import SessionStatus
from services.session_service import (
    LifecycleResult,
    PauseResult,
    ResumeResult,
    StartResult,
    StopResult,
    TrackingAction,
)

BUTTON_IDS = {
    TrackingAction.PAUSE: "pause_tracking",
    TrackingAction.RESUME: "resume_tracking",
    TrackingAction.STOP: "stop_tracking",
}

_BUTTON_STYLES = {
    TrackingAction.PAUSE: ("Pause", "⏸️", discord.ButtonStyle.secondary),
    TrackingAction.RESUME: ("Resume", "▶️", discord.ButtonStyle.success),
    TrackingAction.STOP: ("Stop", "⏹️", discord.ButtonStyle.danger),
}


class TrackingButton(discord.ui.Button):
    """Runs one lifecycle action for whoever presses it"""

    def __init__(self, controller, action: TrackingAction):
        label, emoji, style = _BUTTON_STYLES[action]
        super().__init__(label=label, emoji=emoji, style=style, custom_id=BUTTON_IDS[action])
        self.controller = controller
        self.action = action

    async def callback(self, interaction: discord.Interaction):
        await self.controller.handle_interaction(interaction, self.action)


class TrackingView(discord.ui.View):
    """
    Session controls.

    Buttons carry fixed custom ids and the view never times out, so a view
    registered with `bot.add_view` keeps answering clicks after a restart.
    """

    def __init__(self, controller, actions: Iterable[TrackingAction] = tuple(BUTTON_IDS)):
        super().__init__(timeout=None)
        for action in actions:
            self.add_item(TrackingButton(controller, action))


def actions_after(result: LifecycleResult) -> tuple:
    """Buttons that make sense once `result` has been applied"""
    match result:
        case StartResult() if result.session.status is SessionStatus.PAUSED:
            return (TrackingAction.RESUME, TrackingAction.STOP)
        case StartResult() | ResumeResult():
            return (TrackingAction.PAUSE, TrackingAction.STOP)
        case PauseResult():
            return (TrackingAction.RESUME, TrackingAction.STOP)
        case StopResult():
            return ()
    raise TypeError(f"Unexpected lifecycle result: {result!r}")


def view_for(controller, result: LifecycleResult) -> Optional[TrackingView]:
    actions = actions_after(result)
    return TrackingView(controller, actions) if actions else None
