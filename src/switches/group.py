"""Named switches and switch groups resolved from configuration."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from src.switches.base import Switch, SwitchCollection


logger = logging.getLogger(__name__)


@dataclass
class ResolvedSwitch:
    """A configured switch name bound to a position in a collection."""

    name: str
    collection: SwitchCollection
    index: int
    switch: Switch


class SwitchGroup(SwitchCollection):
    """
    A named, ordered group of switches.

    The group does not own its members; they belong to their collections and
    are only referenced here by name. init() and close() are no-ops.
    """

    def __init__(self, name: str, switches: Optional[Dict[str, ResolvedSwitch]] = None):
        """
        Initialize a switch group.

        Args:
            name: Group name
            switches: Insertion-ordered mapping of member name to resolved switch
        """
        self.name = name
        self.switches: Dict[str, ResolvedSwitch] = dict(switches or {})

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"SwitchGroup({self.name!r}, members={list(self.switches)})"

    def list_switches(self) -> List[Switch]:
        return [resolved.switch for resolved in self.switches.values()]

    def list_member_names(self) -> List[str]:
        return list(self.switches.keys())

    def _member_label(self, index: int, switch: Switch) -> str:
        return f"switch {self.list_member_names()[index]}"
