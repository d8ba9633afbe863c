"""Stage dependency graph validation.

Runs over an already decoded :class:`DeploymentConfig` and rejects graphs
that reference unknown stages, depend on themselves, or contain cycles.
"""

from collections.abc import Mapping, Sequence

from deploybot.core.exceptions import ValidationError
from deploybot.models.config import Stage


def needs_graph(stages: Mapping[str, Stage]) -> dict[str, list[str]]:
    """Build the ``needs`` adjacency map over all declared stages."""
    return {key: list(stage.needs) for key, stage in stages.items()}


def find_cycles(graph: Mapping[str, Sequence[str]], root: str) -> list[str]:
    """Find dependency cycles passing through ``root``.

    Each cycle is rendered as ``root -> a -> b -> root``. Only paths that
    start and end at ``root`` are reported; cycles elsewhere in the graph
    are left to the search rooted at one of their own nodes.

    A node whose full search neither reached ``root`` nor was cut short by
    the current path can never reach ``root`` and is not searched again,
    which keeps layered graphs linear.
    """
    found: list[str] = []
    exhausted: set[str] = set()

    def visit(node: str, path: list[str]) -> bool:
        # True when the search below ``node`` was complete and found nothing
        complete = True
        reached = False
        for edge in graph.get(node, ()):
            if edge == root:
                found.append(" -> ".join([*path, root]))
                reached = True
            elif edge in exhausted:
                continue
            elif edge in path:
                complete = False
            elif not visit(edge, [*path, edge]):
                complete = False
        if complete and not reached:
            exhausted.add(node)
            return True
        return False

    visit(root, [root])
    return found


def validate_stage_graph(stages: Mapping[str, Stage]) -> None:
    """Validate ``needs`` and ``runs`` references of every stage.

    Raises:
        ValidationError: On the first invalid reference or cycle.
    """
    graph = needs_graph(stages)

    for child, stage in stages.items():
        for parent in stage.needs:
            if parent == child:
                raise ValidationError(f"Stage '{child}' cannot depend on itself")
            if parent not in stages:
                raise ValidationError(
                    f"Stage '{child}' needs unknown stage '{parent}'"
                )
            cycles = find_cycles(graph, parent)
            if cycles:
                raise ValidationError(f"Dependency cycle detected: {cycles[0]}")

        for action_id, action in stage.actions.items():
            for target in action.runs:
                # Naming the enclosing stage is allowed to repeat it.
                if target not in stages:
                    raise ValidationError(
                        f"Action '{action_id}' of stage '{child}' runs unknown stage '{target}'"
                    )


def entry_stages(stages: Mapping[str, Stage]) -> tuple[str, ...]:
    """Stages without dependencies, in declaration order."""
    return tuple(key for key, stage in stages.items() if not stage.needs)
