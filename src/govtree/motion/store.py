"""Motion store — motion records and the reference graph between them.

Each motion is one record at ``motion/<id>.json``. A reference is held
on both ends: the source lists it in ``ref_to`` and the target in
``ref_by``. add_ref and remove_ref always rewrite both records, in the
same clone, so they land in the same commit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from govtree.errors import ValidationError
from govtree.models.motion import Motion, MotionState, Ref, rank_by_attention, select_open
from govtree.motion.state_machine import MotionStateMachine
from govtree.persistence import records
from govtree.persistence.store import Clone

logger = logging.getLogger(__name__)

_META_FIELDS = ("tracker_url", "title", "body", "labels")


class MotionStore:
    """Reads and writes motion records inside one clone."""

    def __init__(self, clone: Clone) -> None:
        self._clone = clone

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def create(self, motion: Motion) -> Motion:
        if self.exists(motion.motion_id):
            raise ValidationError(f"Motion already exists: {motion.motion_id}")
        if motion.state != MotionState.OPEN:
            raise ValidationError(f"Motion {motion.motion_id} must be created open")
        if motion.ref_to or motion.ref_by:
            raise ValidationError("References are added after creation")
        if motion.opened_utc is None:
            motion.opened_utc = datetime.now(timezone.utc)
        self.save(motion)
        logger.info("Created %s %s (%s)", motion.motion_type.value, motion.motion_id, motion.policy)
        return motion

    def exists(self, motion_id: str) -> bool:
        return self._clone.exists(records.motion_path(motion_id))

    def get(self, motion_id: str) -> Motion:
        data = records.read_json(self._clone, records.motion_path(motion_id))
        if data is None:
            raise ValidationError(f"Motion not found: {motion_id}")
        return records.motion_from_dict(data)

    def save(self, motion: Motion) -> None:
        records.write_json(self._clone, records.motion_path(motion.motion_id), records.motion_to_dict(motion))

    def list(self) -> list[Motion]:
        """All motions, ordered by id."""
        return [
            records.motion_from_dict(records.read_json(self._clone, p))
            for p in self._clone.list(records.MOTION_DIR)
            if p.endswith(".json")
        ]

    def ranked(self, include_closed: bool = False) -> list[Motion]:
        """Motions ascending by attention, ties broken by id."""
        motions = self.list()
        if not include_closed:
            motions = select_open(motions)
        return rank_by_attention(motions)

    def update_meta(
        self,
        motion_id: str,
        tracker_url: Optional[str] = None,
        title: Optional[str] = None,
        body: Optional[str] = None,
        labels: Optional[list[str]] = None,
    ) -> Motion:
        """Change mutable metadata. Identity fields are not editable."""
        motion = self.get(motion_id)
        if motion.archived:
            raise ValidationError(f"Motion {motion_id} is archived")
        if tracker_url is not None:
            motion.tracker_url = tracker_url
        if title is not None:
            motion.title = title
        if body is not None:
            motion.body = body
        if labels is not None:
            motion.labels = sorted(set(labels))
        self.save(motion)
        return motion

    def set_attention(self, motion_id: str, attention: float) -> Motion:
        motion = self.get(motion_id)
        motion.score.attention = float(attention)
        self.save(motion)
        return motion

    def transition(self, motion_id: str, target: MotionState) -> Motion:
        motion = self.get(motion_id)
        MotionStateMachine.apply_transition(motion, target)
        self.save(motion)
        logger.info("Motion %s → %s", motion_id, target.value)
        return motion

    # ------------------------------------------------------------------
    # Reference graph
    # ------------------------------------------------------------------

    def add_ref(self, from_id: str, to_id: str, ref_type: str) -> Ref:
        """Add a typed edge on both ends. Adding an existing edge is a no-op."""
        if from_id == to_id:
            raise ValidationError(f"Motion {from_id} cannot reference itself")
        if not ref_type:
            raise ValidationError("Reference type must be non-empty")
        source = self.get(from_id)
        target = self.get(to_id)
        ref = Ref(from_id=from_id, to_id=to_id, ref_type=ref_type)
        source.add_ref_to(ref)
        target.add_ref_by(ref)
        self.save(source)
        self.save(target)
        return ref

    def remove_ref(self, from_id: str, to_id: str, ref_type: str) -> Ref:
        """Remove a typed edge from both ends."""
        source = self.get(from_id)
        target = self.get(to_id)
        ref = Ref(from_id=from_id, to_id=to_id, ref_type=ref_type)
        if not source.refers_to(to_id, ref_type):
            raise ValidationError(f"No {ref_type} reference from {from_id} to {to_id}")
        source.remove_ref(ref)
        target.remove_ref(ref)
        self.save(source)
        self.save(target)
        return ref

    def refs_from(self, motion_id: str, ref_type: str) -> list[Motion]:
        """Motions this motion references with the given type."""
        return [
            self.get(r.to_id)
            for r in self.get(motion_id).ref_to
            if r.ref_type == ref_type
        ]

    def refs_to(self, motion_id: str, ref_type: str) -> list[Motion]:
        """Motions referencing this motion with the given type."""
        return [
            self.get(r.from_id)
            for r in self.get(motion_id).ref_by
            if r.ref_type == ref_type
        ]
