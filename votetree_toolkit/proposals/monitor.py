"""
Watches submitted proposal roots and finds the next move in each dispute.

A proposal whose root matches the local network tree is valid and never
looked at again. For any other proposal the monitor walks down the tree from
the root: at each submitted pollard it finds the first wrong node, then reads
the on-chain state of the challenge against that node. An answered challenge
means the proposer has submitted the pollard below it, so the walk continues
there; otherwise the walk stops with the node to challenge, or with the
challenge that is still waiting for an answer.
"""

import time
from typing import Dict, Iterable, Optional, Sequence, Set

from votetree_toolkit.contracts.reader import GovernanceReader
from votetree_toolkit.proposals.challenges import (
    ChallengeState,
    DisputeStatus,
    ProposalDispute,
)
from votetree_toolkit.proposals.events import RootSubmitted
from votetree_toolkit.proposals.manager import ProposalManager
from votetree_toolkit.shared.exceptions import (
    DisputeStateException,
    PollardSizeMismatchException,
)
from votetree_toolkit.shared.logging import get_routine_logger
from votetree_toolkit.shared.results import (
    ChallengeScanSummary,
    ErrorSeverity,
    ProcessingError,
    Result,
)
from votetree_toolkit.trees.network_tree import NETWORK_TREE_ROOT_INDEX

_logger = get_routine_logger(__name__, "Challenge Monitor")


class ChallengeMonitor:
    """
    Follows the disputes of a set of proposals against the local trees.

    Submissions are remembered across scans, keyed by proposal and tree
    index, so a later scan only needs the blocks after the previous one.
    A failure on one proposal never stops the scan: each proposal produces
    a Result and the scan aggregates them in a ChallengeScanSummary.

    Args:
        proposal_manager: Source of the local trees
        reader: Chain reader; defaults to the proposal manager's reader
        previous_verifier_addresses: Earlier verifier deployments whose
            RootSubmitted logs should be scanned too
    """

    def __init__(
        self,
        proposal_manager: ProposalManager,
        reader: Optional[GovernanceReader] = None,
        previous_verifier_addresses: Optional[Sequence[str]] = None,
    ):
        self.proposal_manager = proposal_manager
        self.reader = reader or proposal_manager.reader
        self.previous_verifier_addresses = list(
            previous_verifier_addresses or []
        )
        self._valid_proposals: Set[int] = set()
        self._submissions: Dict[int, Dict[int, RootSubmitted]] = {}

    def record_submissions(self, events: Iterable[RootSubmitted]) -> None:
        """Remember submissions; a later one for the same index wins."""
        for event in events:
            self._submissions.setdefault(event.proposal_id, {})[
                event.index
            ] = event

    def find_dispute(
        self, proposal_id: int, now: Optional[float] = None
    ) -> ProposalDispute:
        """
        Walk a proposal's dispute down to the next thing to do about it.

        Args:
            proposal_id: Proposal to check; its submissions must have been
                recorded
            now: Unix time used to decide whether the challenge window has
                passed; defaults to the current time

        Raises:
            DisputeStateException: a needed submission is missing, the walk
                loops on one index, or the challenge state is unexpected
            PollardSizeMismatchException: a submission has the wrong size
            ChainQueryException: a chain read failed
        """
        submissions = self._submissions.get(proposal_id, {})
        root_submission = submissions.get(NETWORK_TREE_ROOT_INDEX)
        if root_submission is None:
            raise DisputeStateException(
                proposal_id,
                NETWORK_TREE_ROOT_INDEX,
                "the proposal's root submission is missing",
            )
        block_number = root_submission.block_number

        if proposal_id in self._valid_proposals:
            return ProposalDispute(
                proposal_id, DisputeStatus.VALID, block_number=block_number
            )

        network_tree = self.proposal_manager.get_network_tree(block_number)
        if network_tree.root == root_submission.root:
            _logger.info(
                f"Proposal {proposal_id} matches the local tree artifacts, "
                f"so it does not need to be challenged"
            )
            self._valid_proposals.add(proposal_id)
            return ProposalDispute(
                proposal_id, DisputeStatus.VALID, block_number=block_number
            )

        challenged_index = NETWORK_TREE_ROOT_INDEX
        while True:
            submission = submissions.get(challenged_index)
            if submission is None:
                raise DisputeStateException(
                    proposal_id,
                    challenged_index,
                    "challenge has been responded to but the RootSubmitted "
                    "event is missing",
                )

            artifacts = self.proposal_manager.check_for_challengeable_artifacts(
                submission
            )
            if artifacts is None:
                _logger.info(
                    f"Proposal {proposal_id} has no challengeable artifacts "
                    f"under index {challenged_index}"
                )
                return ProposalDispute(
                    proposal_id,
                    DisputeStatus.VALID,
                    index=challenged_index,
                    block_number=block_number,
                )
            if artifacts.index == challenged_index:
                raise DisputeStateException(
                    proposal_id,
                    challenged_index,
                    "cycle error: the new challengeable artifacts have the "
                    "same index",
                )

            state = self.reader.get_challenge_state(
                proposal_id, artifacts.index
            )
            if state == ChallengeState.UNCHALLENGED:
                return ProposalDispute(
                    proposal_id,
                    DisputeStatus.CHALLENGE,
                    index=artifacts.index,
                    block_number=block_number,
                    artifacts=artifacts,
                )
            if state == ChallengeState.CHALLENGED:
                if self._challenge_window_passed(proposal_id, now):
                    return ProposalDispute(
                        proposal_id,
                        DisputeStatus.DEFEATABLE,
                        index=artifacts.index,
                        block_number=block_number,
                    )
                _logger.info(
                    f"Proposal {proposal_id} has already been challenged at "
                    f"index {artifacts.index}; waiting for the proposer to "
                    f"respond"
                )
                return ProposalDispute(
                    proposal_id,
                    DisputeStatus.WAITING,
                    index=artifacts.index,
                    block_number=block_number,
                )
            if state == ChallengeState.RESPONDED:
                challenged_index = artifacts.index
                continue

            raise DisputeStateException(
                proposal_id,
                artifacts.index,
                f"unexpected challenge state {state.name}",
            )

    def check_proposal(
        self, proposal_id: int, now: Optional[float] = None
    ) -> Result[ProposalDispute]:
        context = {"proposal_id": proposal_id}

        try:
            return Result.ok(self.find_dispute(proposal_id, now))
        except PollardSizeMismatchException as e:
            return Result.fail(
                ProcessingError(
                    source="challenge_check",
                    message=f"Protocol violation: {e.message}",
                    severity=ErrorSeverity.CRITICAL,
                    context=context,
                    exception=e,
                )
            )
        except Exception as e:
            return Result.fail(
                ProcessingError(
                    source="challenge_check",
                    message=f"Error checking proposal dispute: {str(e)}",
                    severity=ErrorSeverity.ERROR,
                    context=context,
                    exception=e,
                )
            )

    def scan(
        self,
        proposal_ids: Sequence[int],
        start_block: int,
        end_block: int,
        now: Optional[float] = None,
    ) -> ChallengeScanSummary:
        """
        Read the roots submitted in a block range and walk the dispute of
        every proposal that isn't known to be valid yet.

        Raises:
            ChainQueryException: the event logs couldn't be read
        """
        summary = ChallengeScanSummary(
            start_block=start_block, end_block=end_block
        )
        pending = [
            pid
            for pid in dict.fromkeys(proposal_ids)
            if pid not in self._valid_proposals
        ]
        if not pending:
            return summary

        events = self.reader.get_root_submitted_events(
            pending,
            start_block,
            end_block,
            previous_verifier_addresses=self.previous_verifier_addresses,
        )
        summary.events_processed = len(events)
        self.record_submissions(events)

        for proposal_id in pending:
            result = self.check_proposal(proposal_id, now)
            summary.proposals_checked += 1
            summary.add_error_from_result(result)

            if not result.success:
                summary.proposals_failed += 1
                if result.has_critical_errors():
                    summary.protocol_violations += 1
                _logger.error(
                    f"Proposal {proposal_id}: "
                    f"{'; '.join(result.get_error_messages())}"
                )
                continue

            dispute = result.data
            if dispute.status == DisputeStatus.CHALLENGE:
                summary.challenges_found += 1
                summary.challengeable.append(dispute.to_dict())
            elif dispute.status == DisputeStatus.DEFEATABLE:
                summary.defeats_found += 1
                summary.defeatable.append(dispute.to_dict())
            elif dispute.status == DisputeStatus.WAITING:
                summary.waiting += 1

        if summary.has_errors():
            _logger.warning(
                f"{summary.error_count()} of {summary.proposals_checked} "
                f"proposals could not be checked"
            )
        _logger.info(
            f"Scanned {len(events)} submitted roots in blocks "
            f"{start_block}-{end_block}: {summary.challenges_found} to "
            f"challenge, {summary.defeats_found} defeatable, "
            f"{summary.waiting} waiting"
        )
        return summary

    def _challenge_window_passed(
        self, proposal_id: int, now: Optional[float]
    ) -> bool:
        if now is None:
            now = time.time()
        created = self.reader.get_proposal_created_time(proposal_id)
        period = self.reader.get_challenge_period(proposal_id)
        return now > created + period
