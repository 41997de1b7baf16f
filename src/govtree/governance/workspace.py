"""Workspace — one clone with every store bound to it.

A unit of work builds exactly one Workspace. Everything written through
it is staged in the same clone and lands in the same commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from govtree.ballot.kernels import ScoreKernel
from govtree.ballot.store import BallotStore
from govtree.ballot.tally import TallyEngine
from govtree.config import GovernanceConfig
from govtree.members import MemberStore
from govtree.models.ballot import Notice
from govtree.motion.store import MotionStore
from govtree.persistence import records
from govtree.persistence.store import Clone
from govtree.registry import Registry

if TYPE_CHECKING:
    from govtree.policy.base import MotionPolicy

logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    clone: Clone
    config: GovernanceConfig
    kernels: Registry[ScoreKernel]
    policies: Registry[MotionPolicy]
    tally: TallyEngine = field(default_factory=TallyEngine)
    notices: list[Notice] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.members = MemberStore(self.clone)
        self.motions = MotionStore(self.clone)
        self.ballots = BallotStore(self.clone, self.members, self.kernels)

    def post_notice(self, notice: Notice) -> None:
        """Record a notice for the issue-tracker collaborator."""
        records.write_json(
            self.clone,
            records.notice_path(notice.motion_id),
            records.notice_to_dict(notice),
        )
        self.notices.append(notice)
        logger.debug("Notice posted for motion %s", notice.motion_id)

    def notice_for(self, motion_id: str) -> Optional[Notice]:
        data = records.read_json(self.clone, records.notice_path(motion_id))
        return records.notice_from_dict(data) if data else None
