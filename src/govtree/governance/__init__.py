"""Units of work over one clone and the motion conclusion sequence."""

from govtree.governance.lifecycle import conclude_motion
from govtree.governance.workspace import Workspace

__all__ = ["Workspace", "conclude_motion"]
