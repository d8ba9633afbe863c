"""Trigger matching for deployment configurations."""

from deploybot.models.config import DeploymentConfig, TriggerKind


def matches(config: DeploymentConfig, trigger: TriggerKind, branch: str) -> bool:
    """Check whether a configuration applies to a trigger on a branch.

    A single trigger name must equal ``trigger`` and a list must contain it.
    In the map form the trigger must be present; a ``null`` entry matches
    every branch and a ``branches`` filter only the listed ones.
    """
    triggers = config.triggers

    if isinstance(triggers, str):
        return triggers == trigger

    if isinstance(triggers, tuple):
        return trigger in triggers

    if trigger not in triggers:
        return False

    entry = triggers[trigger]
    if entry is None or entry.branches is None:
        return True

    return branch in entry.branches
