"""
Graph validation - Check a graph for broken invariants.

The store keeps these invariants on every operation; this module lets the
API, the CLI and the tests confirm it on a whole graph.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import GraphState


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken invariant
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    link: tuple[str, str] | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.link:
            result["source"], result["target"] = self.link
        return result


def validate_graph(state: "GraphState") -> list[ValidationIssue]:
    """
    Validate a graph and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Links to nodes not in the graph - ERROR
    - Self-loops - ERROR
    - Duplicate undirected links - ERROR
    - Missing display attributes - ERROR
    - Partially pinned nodes (some of fx/fy/fz unset) - ERROR
    - Isolated nodes (no links) - WARNING
    - Mixed pin state across nodes - INFO
    - Empty graph - INFO

    Args:
        state: The graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    nodes = state.nodes
    links = state.links

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Graph has no nodes"
        ))
        return issues

    # Duplicate ids, and the identity map used by the link checks
    present: dict[str, object] = {}
    for node in nodes:
        if node.id in present:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        else:
            present[node.id] = node

    for node in nodes:
        if not node.color or not node.text_size:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Node is missing display attributes",
                node_id=node.id
            ))
        if node.has_partial_pin:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Node is only partially pinned",
                node_id=node.id
            ))

    connected: set[str] = set()
    seen_keys: set[frozenset] = set()
    for link in links:
        pair = (link.source_id, link.target_id)

        for endpoint in (link.source, link.target):
            if present.get(endpoint.id) is not endpoint:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Link references a node not in the graph: {endpoint.id}",
                    link=pair
                ))

        if link.source_id == link.target_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Self-loop (node linked to itself)",
                node_id=link.source_id,
                link=pair
            ))

        if link.key in seen_keys:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate link between {link.source_id} and {link.target_id}",
                link=pair
            ))
        seen_keys.add(link.key)

        if not link.color or not link.thickness:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Link is missing display attributes",
                link=pair
            ))

        connected.update(pair)

    isolated = [n.id for n in nodes if n.id not in connected]
    if isolated:
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Isolated nodes (no links): {', '.join(isolated)}"
        ))

    pinned_count = sum(1 for n in nodes if n.is_pinned)
    if 0 < pinned_count < len(nodes):
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message=f"{pinned_count} of {len(nodes)} nodes are pinned"
        ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
