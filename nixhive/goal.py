"""Deployment goals."""

from __future__ import annotations

import enum


class Goal(enum.Enum):
    """The goal of a deployment. The default goal is SWITCH."""

    BUILD = "build"
    PUSH = "push"
    SWITCH = "switch"
    BOOT = "boot"
    TEST = "test"
    DRY_ACTIVATE = "dry-activate"
    UPLOAD_KEYS = "keys"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> Goal:
        """Parses a goal from its command-line spelling."""
        for goal in cls:
            if goal.value == value:
                return goal
        raise ValueError(
            "Not one of [build, push, switch, boot, test, dry-activate, keys]."
        )

    def activation_name(self) -> str | None:
        """Returns the switch-to-configuration argument, if any."""
        if self in (Goal.BUILD, Goal.PUSH):
            return None
        return self.value

    def success_str(self) -> str:
        """Returns the message shown when the goal is reached."""
        return _SUCCESS[self]

    def should_switch_profile(self) -> bool:
        return self in (Goal.BOOT, Goal.SWITCH)

    def requires_activation(self) -> bool:
        return self not in (Goal.BUILD, Goal.UPLOAD_KEYS, Goal.PUSH)

    def persists_after_reboot(self) -> bool:
        return self in (Goal.SWITCH, Goal.BOOT)

    def requires_target_host(self) -> bool:
        return self is not Goal.BUILD


_SUCCESS = {
    Goal.BUILD: "Configuration built",
    Goal.PUSH: "Pushed",
    Goal.SWITCH: "Activation successful",
    Goal.BOOT: "Will be activated next boot",
    Goal.TEST: "Activation successful (test)",
    Goal.DRY_ACTIVATE: "Dry activation successful",
    Goal.UPLOAD_KEYS: "Uploaded keys",
}