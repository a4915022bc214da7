"""
Module: editing.timing_editor

Purpose:
    Mutation of a slide's animation timing tree. Click triggers are only
    ever appended to the end of the main sequence, and effects are only
    ever appended under an existing trigger; mid-sequence insertion,
    removal and reordering are not supported.

    Timing node ids are slide-scoped: each new node gets the slide's
    current maximum cTn id plus one.

Key Classes:
    - TimingTreeEditor: ensure_timing_root / create_click_trigger / bind_effect

Key Functions:
    - validate_timing(): Click-trigger delay placement and binding targets

Dependencies:
    - lxml

Used By:
    - session.session (validation)
    - callers attaching animations to slides
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, List, Optional

from lxml import etree

from ..core.config import EditingConfig
from ..core.errors import NotFoundError
from ..core.models.identifiers import parse_decimal
from ..core.models.timing import (
    CLICK_EFFECT_NODE_TYPE,
    INDEFINITE,
    MAIN_SEQUENCE_NODE_TYPE,
    ROOT_NODE_TYPE,
    AnimationBinding,
)
from ..core.models.validation import Finding, ValidationReport
from ..core.utils.xml import qn, sub_element, xpath
from ..parsing.slide_parser import parse_timing_tree, shape_ids

logger = logging.getLogger(__name__)

TRANSITIONS = ("in", "out")
EFFECT_KINDS = ("animEffect", "set")

# Children of p:sld that follow p:timing
_AFTER_TIMING = ("extLst",)


class TimingTreeEditor:
    """
    Appends click triggers and effects to one slide document.

    Example:
        >>> editor = TimingTreeEditor(slide_tree)
        >>> trigger = editor.create_click_trigger()
        >>> editor.bind_effect(trigger, shape_id=4)
        AnimationBinding(target_shape_id=4, effect_kind='animEffect', ...)
    """

    def __init__(self, document: Any, config: Optional[EditingConfig] = None):
        self._root = document.getroot() if isinstance(document, etree._ElementTree) else document
        self._config = config or EditingConfig()

    def next_node_id(self) -> int:
        """Slide's maximum cTn id plus one."""
        ids = [n for n in (parse_decimal(v) for v in xpath(self._root, ".//p:timing//p:cTn/@id")) if n is not None]
        return max(ids, default=0) + 1

    # ─────────────────────────────────────────────────────────────────────────
    # Skeleton
    # ─────────────────────────────────────────────────────────────────────────

    def _timing_element(self) -> etree._Element:
        timing = self._root.find(qn("p:timing"))
        if timing is not None:
            return timing
        timing = sub_element(self._root, "p:timing")
        for child in self._root:
            if child is not timing and isinstance(child.tag, str) and etree.QName(child).localname in _AFTER_TIMING:
                child.addprevious(timing)
                break
        return timing

    def _new_ctn(self, parent: etree._Element, **attrib: str) -> etree._Element:
        ctn = sub_element(parent, "p:cTn", {"id": str(self.next_node_id())})
        for key, value in attrib.items():
            ctn.set(key, value)
        return ctn

    def ensure_timing_root(self) -> etree._Element:
        """
        Make sure the slide has root container and main sequence.

        Returns:
            The main sequence's child list, where click triggers live.
        """
        main_seq = xpath(self._root, f".//p:timing//p:cTn[@nodeType='{MAIN_SEQUENCE_NODE_TYPE}']")
        if main_seq:
            child_list = main_seq[0].find(qn("p:childTnLst"))
            if child_list is None:
                child_list = sub_element(main_seq[0], "p:childTnLst")
            return child_list

        timing = self._timing_element()
        roots = xpath(timing, f".//p:cTn[@nodeType='{ROOT_NODE_TYPE}']")
        if roots:
            root_ctn = roots[0]
        else:
            tn_lst = timing.find(qn("p:tnLst"))
            if tn_lst is None:
                tn_lst = sub_element(timing, "p:tnLst")
                timing.insert(0, tn_lst)
            par = sub_element(tn_lst, "p:par")
            root_ctn = self._new_ctn(par, dur=INDEFINITE, restart="never", nodeType=ROOT_NODE_TYPE)
        root_children = root_ctn.find(qn("p:childTnLst"))
        if root_children is None:
            root_children = sub_element(root_ctn, "p:childTnLst")

        seq = sub_element(root_children, "p:seq", {"concurrent": "1", "nextAc": "seek"})
        seq_ctn = self._new_ctn(seq, dur=INDEFINITE, nodeType=MAIN_SEQUENCE_NODE_TYPE)
        child_list = sub_element(seq_ctn, "p:childTnLst")
        for cond_list, event in (("p:prevCondLst", "onPrev"), ("p:nextCondLst", "onNext")):
            cond = sub_element(sub_element(seq, cond_list), "p:cond", {"evt": event, "delay": "0"})
            sub_element(sub_element(cond, "p:tgtEl"), "p:sldTgt")
        logger.debug("Created timing root and main sequence")
        return child_list

    # ─────────────────────────────────────────────────────────────────────────
    # Triggers and effects
    # ─────────────────────────────────────────────────────────────────────────

    def _trigger_elements(self, child_list: etree._Element) -> List[etree._Element]:
        triggers = []
        for par in child_list.findall(qn("p:par")):
            delays = xpath(par, "./p:cTn/p:stCondLst/p:cond[1]/@delay")
            if delays and delays[0] == INDEFINITE:
                triggers.append(par)
        return triggers

    def trigger_count(self) -> int:
        return parse_timing_tree(self._root).trigger_count

    def create_click_trigger(self) -> int:
        """
        Append a click trigger to the end of the main sequence.

        Returns:
            1-based ordinal of the new trigger (prior count + 1).
        """
        child_list = self.ensure_timing_root()
        ordinal = len(self._trigger_elements(child_list)) + 1
        par = sub_element(child_list, "p:par")
        ctn = self._new_ctn(par, fill="hold")
        sub_element(sub_element(ctn, "p:stCondLst"), "p:cond", {"delay": INDEFINITE})
        sub_element(ctn, "p:childTnLst")
        logger.debug(f"Created click trigger {ordinal}")
        return ordinal

    def bind_effect(
        self,
        trigger: int,
        shape_id: int,
        kind: str = "animEffect",
        transition: str = "in",
        filter: Optional[str] = None,
        duration: Optional[str] = None,
        delay: str = "0",
    ) -> AnimationBinding:
        """
        Append an effect bound to ``shape_id`` under click trigger ``trigger``.

        Raises:
            ValueError: If transition or kind is not supported.
            NotFoundError: If the trigger or the shape does not exist.
        """
        if transition not in TRANSITIONS:
            raise ValueError(f"Transition must be one of {TRANSITIONS}, got {transition!r}")
        if kind not in EFFECT_KINDS:
            raise ValueError(f"Effect kind must be one of {EFFECT_KINDS}, got {kind!r}")
        if delay == INDEFINITE:
            raise ValueError("Effect delay cannot be 'indefinite'")
        if shape_id not in shape_ids(self._root):
            raise NotFoundError(f"Shape {shape_id} does not exist on this slide")

        main_seq = xpath(self._root, f".//p:timing//p:cTn[@nodeType='{MAIN_SEQUENCE_NODE_TYPE}']/p:childTnLst")
        triggers = self._trigger_elements(main_seq[0]) if main_seq else []
        if not 1 <= trigger <= len(triggers):
            raise NotFoundError(f"Click trigger {trigger} does not exist ({len(triggers)} defined)")

        filter = filter or self._config.default_effect_filter
        duration = duration or self._config.default_effect_duration
        trigger_children = triggers[trigger - 1].find(f"{qn('p:cTn')}/{qn('p:childTnLst')}")

        par = sub_element(trigger_children, "p:par")
        effect_ctn = self._new_ctn(
            par,
            presetID="10",
            presetClass="entr" if transition == "in" else "exit",
            presetSubtype="0",
            fill="hold",
            nodeType=CLICK_EFFECT_NODE_TYPE,
        )
        sub_element(sub_element(effect_ctn, "p:stCondLst"), "p:cond", {"delay": delay})
        behaviours = sub_element(effect_ctn, "p:childTnLst")

        if kind == "animEffect":
            element = sub_element(behaviours, "p:animEffect", {"transition": transition, "filter": filter})
            self._behaviour(element, shape_id, dur=duration)
            binding = AnimationBinding(shape_id, kind, transition, filter, duration, delay, trigger)
        else:
            element = sub_element(behaviours, "p:set")
            behaviour = self._behaviour(element, shape_id, dur="1", fill="hold")
            attr_names = sub_element(behaviour, "p:attrNameLst")
            sub_element(attr_names, "p:attrName").text = "style.visibility"
            to = sub_element(element, "p:to")
            sub_element(to, "p:strVal", {"val": "visible" if transition == "in" else "hidden"})
            binding = AnimationBinding(shape_id, kind, transition, None, "1", delay, trigger)

        logger.debug(f"Bound {kind} ({transition}) on shape {shape_id} to trigger {trigger}")
        return binding

    def _behaviour(self, element: etree._Element, shape_id: int, **ctn_attrib: str) -> etree._Element:
        behaviour = sub_element(element, "p:cBhvr")
        self._new_ctn(behaviour, **ctn_attrib)
        target = sub_element(behaviour, "p:tgtEl")
        sub_element(target, "p:spTgt", {"spid": str(shape_id)})
        return behaviour


# ─────────────────────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────────────────────

def validate_timing(document: Any, part_name: str = "") -> ValidationReport:
    """
    Check a slide's timing tree.

    Errors:
        - a node in trigger position without delay "indefinite"
        - a node elsewhere with delay "indefinite"
        - duplicate timing node ids
    Warnings:
        - effect or build-list targets missing from the slide's shape set
          (they may reference layout/master content)
    """
    tree = parse_timing_tree(document)
    findings: List[Finding] = []
    if tree.is_empty:
        return ValidationReport.of(findings)

    for node in tree.iter_nodes():
        label = f"timing node {node.node_id if node.node_id is not None else '?'}"
        if node.trigger_position and node.element == "par" and not node.is_click_trigger:
            findings.append(Finding.error(
                "trigger-without-indefinite-delay",
                f"{label} is a click-trigger group but has delay {node.delay!r}",
                part_name,
            ))
        elif not node.trigger_position and node.is_click_trigger:
            findings.append(Finding.error(
                "misplaced-indefinite-delay",
                f"{label} is not a click trigger but has delay 'indefinite'",
                part_name,
            ))

    counts = Counter(n.node_id for n in tree.iter_nodes() if n.node_id is not None)
    for node_id, count in sorted(counts.items()):
        if count > 1:
            findings.append(Finding.error(
                "duplicate-timing-node-id", f"Timing node id {node_id} occurs {count} times", part_name,
            ))

    present = set(shape_ids(document))
    for binding in tree.bindings():
        if binding.target_shape_id not in present:
            findings.append(Finding.warning(
                "unknown-animation-target",
                f"{binding.effect_kind} targets shape {binding.target_shape_id}, which is not on the slide",
                part_name,
            ))
    for spid in tree.build_targets:
        if spid not in present:
            findings.append(Finding.warning(
                "unknown-build-target", f"Build list references shape {spid}, which is not on the slide",
                part_name,
            ))
    return ValidationReport.of(findings)
