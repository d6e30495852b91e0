"""Apply an action map to the certificate store fleet."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from trustroot.core.collaborators import StoreManagementClient
from trustroot.core.models import Action, ActionOutcome, ActionState
from trustroot.errors import ApplyError, TrustRootError

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Outcome of every action considered by a reconcile run."""

    dry_run: bool
    outcomes: list[ActionOutcome] = field(default_factory=list)

    @property
    def up_to_date(self) -> bool:
        return not self.outcomes

    def _in_state(self, state: ActionState) -> list[ActionOutcome]:
        return [outcome for outcome in self.outcomes if outcome.state is state]

    @property
    def applied(self) -> list[ActionOutcome]:
        return self._in_state(ActionState.APPLIED)

    @property
    def skipped(self) -> list[ActionOutcome]:
        return self._in_state(ActionState.SKIPPED)

    @property
    def failed(self) -> list[ActionOutcome]:
        return self._in_state(ActionState.FAILED)

    def summary(self) -> dict[str, int]:
        return {
            "total": len(self.outcomes),
            "applied": len(self.applied),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
        }


def _apply(action: Action, client: StoreManagementClient, dry_run: bool) -> ActionOutcome:
    outcome = ActionOutcome(action=action)
    verb = "add" if action.add_cert else "remove"

    if dry_run:
        logger.info(
            "[DRY RUN] Would %s %s (cert %d) on store %s (%s)",
            verb,
            action.thumbprint,
            action.cert_id,
            action.store_id,
            action.store_path,
        )
        outcome.state = ActionState.SKIPPED
        return outcome

    try:
        if action.add_cert:
            client.add_certificate_to_store(action.cert_id, action.store_id, overwrite=True, immediate=True)
        else:
            client.remove_certificate_from_store(
                action.cert_id,
                action.store_id,
                alias=action.thumbprint,
                immediate=True,
            )
    except TrustRootError as error:
        outcome.state = ActionState.FAILED
        outcome.error = ApplyError(action.thumbprint, action.store_id, action.store_path, error)
        logger.error("%s", outcome.error)
        return outcome

    outcome.state = ActionState.APPLIED
    logger.info(
        "Scheduled %s of %s on store %s (%s)",
        verb,
        action.thumbprint,
        action.store_id,
        action.store_path,
    )
    return outcome


def apply_actions(
    actions: Mapping[str, Sequence[Action]],
    client: StoreManagementClient,
    dry_run: bool = False,
) -> ReconcileReport:
    """Execute every add/remove action. Failures are isolated per action."""
    report = ReconcileReport(dry_run=dry_run)

    if not any(actions.values()):
        logger.info("Root of trust is up to date, nothing to reconcile")
        return report

    for thumbprint, items in actions.items():
        for action in items:
            if action.is_noop:
                logger.debug("Ignoring no-op action for %s on store %s", thumbprint, action.store_id)
                continue
            report.outcomes.append(_apply(action, client, dry_run))

    summary = report.summary()
    logger.info(
        "Reconcile finished: %d applied, %d skipped, %d failed",
        summary["applied"],
        summary["skipped"],
        summary["failed"],
    )
    for outcome in report.failed:
        logger.warning("Failed: %s", outcome.error)
    return report
