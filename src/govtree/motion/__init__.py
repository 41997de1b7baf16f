"""Motions — the record store, reference graph and lifecycle."""

from govtree.motion.state_machine import MotionStateMachine
from govtree.motion.store import MotionStore

__all__ = ["MotionStateMachine", "MotionStore"]
