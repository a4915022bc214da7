"""
Module: timing

Purpose:
    Immutable model of a slide's animation timing tree. The tree is a
    hierarchy of time containers: a root container holding the main
    sequence, whose children are click-triggered groups, whose descendants
    are effect leaves bound to one target shape each.

Key Classes:
    - TimingNode: One time container or behaviour node
    - TimingTree: Root node plus build list, with derived views
    - AnimationBinding: Derived (effect leaf -> target shape) record

Key Functions:
    - TimingTree.click_triggers: Ordered click-triggered groups of the main sequence
    - TimingTree.bindings(): Every effect leaf as an AnimationBinding
    - TimingNode.iter_all(): Pre-order walk

Dependencies:
    - dataclasses (std)
    - typing (std)

Used By:
    - parsing.slide_parser (builds trees from XML)
    - editing.timing_editor (validation)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

INDEFINITE = "indefinite"

ROOT_NODE_TYPE = "tmRoot"
MAIN_SEQUENCE_NODE_TYPE = "mainSeq"
CLICK_EFFECT_NODE_TYPE = "clickEffect"

SEQUENCE_ELEMENT = "seq"


@dataclass(frozen=True, slots=True)
class TimingNode:
    """
    A node of the timing tree (immutable).

    Container nodes (par, seq, excl) carry children; behaviour nodes
    (animEffect, set, anim, ...) carry a target shape id and no children.

    Attributes:
        element: Local tag of the XML element ("par", "seq", "animEffect", ...)
        node_id: cTn/@id (None if absent or non-numeric)
        node_type: cTn/@nodeType ("" if absent)
        duration: cTn/@dur
        delay: Delay of the first start condition; "indefinite" for click triggers
        children: Child nodes in document order
        target_shape_id: spTgt/@spid of a behaviour node
        transition: animEffect/@transition ("in" or "out")
        filter: animEffect/@filter, e.g. "fade"
        preset_class: cTn/@presetClass of an effect container ("entr", "exit", ...)
        trigger_position: True when this node sits directly under a sequence
            container, i.e. where click-triggered groups live
    """
    element: str
    node_id: Optional[int] = None
    node_type: str = ""
    duration: Optional[str] = None
    delay: Optional[str] = None
    children: Tuple[TimingNode, ...] = ()
    target_shape_id: Optional[int] = None
    transition: Optional[str] = None
    filter: Optional[str] = None
    preset_class: Optional[str] = None
    trigger_position: bool = False

    @property
    def is_click_trigger(self) -> bool:
        """Node starts on a user-advance action."""
        return self.delay == INDEFINITE

    @property
    def is_effect(self) -> bool:
        """Behaviour leaf bound to a shape."""
        return self.target_shape_id is not None

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0

    def iter_all(self) -> Iterator[TimingNode]:
        """Iterate over this node and all descendants (pre-order)."""
        yield self
        for child in self.children:
            yield from child.iter_all()

    def iter_effects(self) -> Iterator[TimingNode]:
        """Iterate over effect leaves in document order."""
        for node in self.iter_all():
            if node.is_effect:
                yield node

    def find_node_type(self, node_type: str) -> Optional[TimingNode]:
        """First node (pre-order) with the given nodeType."""
        for node in self.iter_all():
            if node.node_type == node_type:
                return node
        return None


@dataclass(frozen=True, slots=True)
class AnimationBinding:
    """
    Derived view of one effect leaf.

    Attributes:
        target_shape_id: Shape the effect animates
        effect_kind: Behaviour element ("animEffect", "set", ...)
        transition: "in" / "out" (None for behaviours without one)
        filter: Visual filter (None for behaviours without one)
        duration: Behaviour duration
        delay: Start delay of the effect (never "indefinite")
        trigger: 1-based ordinal of the enclosing click trigger, if any
    """
    target_shape_id: int
    effect_kind: str
    transition: Optional[str] = None
    filter: Optional[str] = None
    duration: Optional[str] = None
    delay: str = "0"
    trigger: Optional[int] = None


@dataclass(frozen=True, slots=True)
class TimingTree:
    """
    A slide's timing tree (immutable).

    Attributes:
        root: Top-level time container (None when the slide has no timing)
        build_targets: Shape ids referenced from the build list (bldP etc.)

    Example:
        >>> effect = TimingNode("animEffect", 4, duration="330", target_shape_id=2)
        >>> trigger = TimingNode("par", 3, delay="indefinite", trigger_position=True,
        ...                      children=(effect,))
        >>> seq = TimingNode("seq", 2, node_type="mainSeq", children=(trigger,))
        >>> tree = TimingTree(TimingNode("par", 1, node_type="tmRoot", children=(seq,)))
        >>> tree.trigger_count
        1
        >>> tree.bindings()[0].target_shape_id
        2
    """
    root: Optional[TimingNode] = None
    build_targets: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.root is None

    @property
    def main_sequence(self) -> Optional[TimingNode]:
        if self.root is None:
            return None
        return self.root.find_node_type(MAIN_SEQUENCE_NODE_TYPE)

    @property
    def click_triggers(self) -> Tuple[TimingNode, ...]:
        """Click-triggered groups of the main sequence, in order."""
        sequence = self.main_sequence
        if sequence is None:
            return ()
        return tuple(child for child in sequence.children if child.is_click_trigger)

    @property
    def trigger_count(self) -> int:
        return len(self.click_triggers)

    def iter_nodes(self) -> Iterator[TimingNode]:
        if self.root is not None:
            yield from self.root.iter_all()

    def max_node_id(self) -> int:
        """Largest numeric node id in the tree (0 if none)."""
        return max((n.node_id for n in self.iter_nodes() if n.node_id is not None), default=0)

    def target_shape_ids(self) -> Tuple[int, ...]:
        """Shape ids referenced by effect leaves, in document order."""
        if self.root is None:
            return ()
        return tuple(n.target_shape_id for n in self.root.iter_effects())  # type: ignore[misc]

    def bindings(self) -> Tuple[AnimationBinding, ...]:
        """All effect leaves as bindings, in document order."""
        if self.root is None:
            return ()
        ordinals = {id(node): i for i, node in enumerate(self.click_triggers, start=1)}
        out: List[AnimationBinding] = []
        _collect_bindings(self.root, None, "0", ordinals, out)
        return tuple(out)


def _collect_bindings(
    node: TimingNode,
    trigger: Optional[int],
    inherited_delay: str,
    ordinals: dict,
    out: List[AnimationBinding],
) -> None:
    trigger = ordinals.get(id(node), trigger)
    delay = inherited_delay
    if node.delay is not None and node.delay != INDEFINITE:
        delay = node.delay
    if node.is_effect:
        out.append(AnimationBinding(
            target_shape_id=node.target_shape_id,  # type: ignore[arg-type]
            effect_kind=node.element,
            transition=node.transition,
            filter=node.filter,
            duration=node.duration,
            delay=delay,
            trigger=trigger,
        ))
    for child in node.children:
        _collect_bindings(child, trigger, delay, ordinals, out)
