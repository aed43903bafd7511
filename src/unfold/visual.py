"""Rule-based diagram generation (Mermaid syntax)."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from .models import EntryType, KnowledgeEntry, VisualContext


@dataclass
class ProcessStep:
    id: str
    description: str
    conditions: list[tuple[str, str, str | None]] = field(default_factory=list)
    """``(condition, action, target_id)`` branches."""

    next_id: str | None = None


_SUBSCRIPTION_STEPS = [
    ProcessStep("start", "User selects subscription plan", next_id="payment"),
    ProcessStep("payment", "Process payment through Stripe", conditions=[
        ("Payment successful", "Create subscription", "activate"),
        ("Payment failed", "Show error message", "start"),
    ]),
    ProcessStep("activate", "Activate member subscription", next_id="access"),
    ProcessStep("access", "Grant access to premium content"),
]

_CONTENT_STEPS = [
    ProcessStep("create", "Author creates post content", next_id="visibility"),
    ProcessStep("visibility", "Set post visibility", conditions=[
        ("Public", "Available to all visitors", "publish"),
        ("Members-only", "Available to registered members", "publish"),
        ("Paid members", "Available to paid subscribers only", "publish"),
    ]),
    ProcessStep("publish", "Publish post", next_id="access"),
    ProcessStep("access", "Reader accesses content based on membership status"),
]

_AUTH_STEPS = [
    ProcessStep("request", "User submits credentials", next_id="verify"),
    ProcessStep("verify", "Verify credentials", conditions=[
        ("Valid", "Create session", "session"),
        ("Invalid", "Show login error", "request"),
    ]),
    ProcessStep("session", "Issue session token", next_id="access"),
    ProcessStep("access", "Access protected resources"),
]

COMPONENT_DIAGRAM = (
    "graph LR\n"
    "  client[Client / UI] --> api[API layer]\n"
    "  api --> services[Services]\n"
    "  services --> models[Data models]\n"
    "  services --> external[External integrations]\n"
)

MEMBER_STATE_DIAGRAM = (
    "stateDiagram-v2\n"
    "  [*] --> Free\n"
    "  Free --> Paid: subscribe\n"
    "  Paid --> Free: subscription expires\n"
    "  Paid --> Comped: granted manually\n"
    "  Comped --> Free: access revoked\n"
    "  Free --> [*]: delete account\n"
)


def flowchart(steps: Sequence[ProcessStep]) -> str:
    lines = ["graph TD"]
    for step in steps:
        lines.append(f'  {step.id}["{step.description}"]')
    for step in steps:
        if step.next_id:
            lines.append(f"  {step.id} --> {step.next_id}")
        for i, (condition, action, target) in enumerate(step.conditions):
            cond_id = f"{step.id}_cond{i}"
            lines.append(f'  {step.id} -- "{condition}" --> {cond_id}')
            lines.append(f'  {cond_id}["{action}"]')
            if target:
                lines.append(f"  {cond_id} --> {target}")
    return "\n".join(lines) + "\n"


# Keyword families, highest priority first.
_FAMILIES: list[tuple[re.Pattern[str], VisualContext]] = [
    (re.compile(r"\bsubscri|\bpayment|\bbilling|\bcheckout"),
     VisualContext(type="flowchart", syntax=flowchart(_SUBSCRIPTION_STEPS))),
    (re.compile(r"\bcontent|\bpublish|\bposts?\b"),
     VisualContext(type="flowchart", syntax=flowchart(_CONTENT_STEPS))),
    (re.compile(r"\bauth|\blog ?in\b|\bsign ?in\b"),
     VisualContext(type="flowchart", syntax=flowchart(_AUTH_STEPS))),
    (re.compile(r"\barchitecture|\bcomponent|\bstructure"),
     VisualContext(type="component", syntax=COMPONENT_DIAGRAM)),
    (re.compile(r"\bmember.*\b(?:state|status)\b|\b(?:state|status)\b.*\bmember|\blifecycle\b"),
     VisualContext(type="state", syntax=MEMBER_STATE_DIAGRAM)),
]

_NODE_ID_RE = re.compile(r"\W+")
_MAX_GENERIC_NODES = 12


def _node_name(entry: KnowledgeEntry) -> str | None:
    if entry.type not in (EntryType.function, EntryType.export):
        return None
    name = entry.metadata.get("name")
    return name if isinstance(name, str) and name and name != "default" else None


def _generic_flow(entries: Sequence[KnowledgeEntry]) -> VisualContext | None:
    """Nodes from function/export names, edges from import-like references."""
    nodes: dict[str, str] = {}
    for entry in entries:
        name = _node_name(entry)
        if name and name not in nodes:
            nodes[name] = entry.file_path
        if len(nodes) >= _MAX_GENERIC_NODES:
            break
    if len(nodes) < 2:
        return None

    edges: list[tuple[str, str]] = []
    for entry in entries:
        source = _node_name(entry)
        if source is None:
            continue
        text = entry.content
        body = entry.metadata.get("body")
        if isinstance(body, str):
            text = f"{text}\n{body}"
        for target in nodes:
            if target == source or (source, target) in edges:
                continue
            if re.search(
                rf"(?:import\s*\{{?[^;\n]*\b{re.escape(target)}\b|require\([^)]*{re.escape(target)}|from\s+\S+\s+import\s+[^\n]*\b{re.escape(target)}\b|\b{re.escape(target)}\s*\()",
                text,
            ):
                edges.append((source, target))
    if not edges:
        return None

    lines = ["graph TD"]
    used = {n for edge in edges for n in edge}
    for name in nodes:
        if name in used:
            lines.append(f'  {_NODE_ID_RE.sub("_", name)}["{name}"]')
    for source, target in edges:
        lines.append(f"  {_NODE_ID_RE.sub('_', source)} --> {_NODE_ID_RE.sub('_', target)}")
    return VisualContext(type="flowchart", syntax="\n".join(lines) + "\n")


def visualize(query: str, entries: Sequence[KnowledgeEntry] = ()) -> VisualContext | None:
    """Canned diagram for a recognized topic, else a generic call flow, else None."""
    lowered = query.lower()
    for pattern, visual in _FAMILIES:
        if pattern.search(lowered):
            return visual.model_copy()
    return _generic_flow(entries)
