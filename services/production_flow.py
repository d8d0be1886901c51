# services/production_flow.py
"""
Where is a layer on its production line, and where does it go next.

A production line is an ordered list of micro-lines, each an ordered list of
steps. ``flatten`` turns that graph into one globally ordered list and
``next_step`` walks it. Both are pure: they read whatever the caller loaded
(ORM rows or dict snapshots) and never touch the database.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from services.refs import field, is_resolved, ref_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlatStep:
    step: Any                      # loaded Step (row or mapping) or a bare id
    step_id: Optional[str]
    micro_line: Any
    micro_line_id: Optional[str]
    micro_line_index: int
    step_index: int                # position inside its micro-line
    global_index: int              # position in the flattened line
    order: int

    @property
    def name(self) -> Optional[str]:
        return field(self.step, "name") if is_resolved(self.step) else None


@dataclass(frozen=True)
class NextStep:
    entry: FlatStep
    is_new_micro_line: bool
    warning: Optional[str] = None  # set when the resolver had to recover

    @property
    def step(self) -> Any:
        return self.entry.step

    @property
    def step_id(self) -> Optional[str]:
        return self.entry.step_id

    @property
    def micro_line_id(self) -> Optional[str]:
        return self.entry.micro_line_id

    def as_decision(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "micro_line_id": self.micro_line_id,
            "is_new_micro_line": self.is_new_micro_line,
        }


def _order(ref: Any) -> int:
    return field(ref, "order", 0) or 0


def flatten(production_line: Any) -> List[FlatStep]:
    """Micro-lines by ``order``, then steps by ``order``; stable on ties."""
    if production_line is None:
        return []

    out: List[FlatStep] = []
    micro_refs = sorted(field(production_line, "micro_lines", None) or [], key=_order)

    for mi, micro_ref in enumerate(micro_refs):
        micro_line = field(micro_ref, "micro_line")
        if not is_resolved(micro_line):
            logger.debug("micro-line #%s of line %s is not loaded; skipped", mi, ref_id(production_line))
            continue

        step_refs = sorted(field(micro_line, "steps", None) or [], key=_order)
        for si, step_ref in enumerate(step_refs):
            if step_ref is None:
                continue
            step = field(step_ref, "step")
            if step is None:
                step = field(step_ref, "step_id")
            if step is None:
                continue
            out.append(
                FlatStep(
                    step=step,
                    step_id=ref_id(step),
                    micro_line=micro_line,
                    micro_line_id=ref_id(micro_line),
                    micro_line_index=mi,
                    step_index=si,
                    global_index=len(out),
                    order=_order(step_ref),
                )
            )

    return out


def locate(entries: List[FlatStep], step: Any) -> Optional[int]:
    """Global index of ``step`` (any reference shape) in ``entries``."""
    wanted = ref_id(step)
    if wanted is None:
        return None
    for e in entries:
        if e.step_id == wanted:
            return e.global_index
    return None


def current_step_ref(layer: Any) -> Optional[str]:
    return ref_id(field(layer, "current_step")) or ref_id(field(layer, "current_step_id"))


def current_position(layer: Any) -> Optional[FlatStep]:
    """Flattened entry of the layer's current step, or None."""
    line = field(layer, "production_line")
    if not is_resolved(line):
        return None
    entries = flatten(line)
    idx = locate(entries, current_step_ref(layer))
    return entries[idx] if idx is not None else None


def next_step(layer: Any) -> Optional[NextStep]:
    """
    Next step for ``layer`` or None.

    None means either "no decision possible" (line missing/empty) or
    "terminal" (layer sits on the last step). Callers that need to tell the
    two apart check the line themselves before calling.
    """
    line = field(layer, "production_line")
    if not is_resolved(line):
        logger.info("layer %s has no loaded production line", ref_id(layer))
        return None

    entries = flatten(line)
    if not entries:
        return None

    current = current_step_ref(layer)
    if current is None:
        return NextStep(entry=entries[0], is_new_micro_line=True)

    idx = locate(entries, current)
    if idx is None:
        warning = (
            f"current step {current} is not on production line {ref_id(line)}; "
            f"falling back to first step {entries[0].step_id}"
        )
        logger.warning("layer %s: %s", ref_id(layer), warning)
        return NextStep(entry=entries[0], is_new_micro_line=True, warning=warning)

    if idx == len(entries) - 1:
        return None

    here, there = entries[idx], entries[idx + 1]
    return NextStep(entry=there, is_new_micro_line=there.micro_line_index != here.micro_line_index)


def step_path(layer: Any) -> str:
    """Numbered step path of the layer's line with the current step marked."""
    line = field(layer, "production_line")
    if not is_resolved(line):
        return "No production line"

    entries = flatten(line)
    idx = locate(entries, current_step_ref(layer))
    rows = []
    for e in entries:
        label = e.name or e.step_id or "?"
        rows.append(f"{e.global_index + 1}. {label}{' (CURRENT)' if e.global_index == idx else ''}")
    return "\n".join(rows)
