"""Structured filter engine for transactions.

A filter is a tree of :class:`~ledger_manager.models.FilterGroup` nodes
(``and``/``or`` over their children) with
:class:`~ledger_manager.models.FilterCondition` leaves (one field
comparison each).  The module has three parts:

- **Evaluation** -- :func:`evaluate_node` and :func:`filter_transactions`.
  Evaluation never raises: unknown fields, unknown operators and values of
  the wrong type all make the condition fail, so the transaction is
  excluded.  An empty group passes everything.
- **Factories** -- :func:`create_condition`, :func:`create_group`,
  :func:`create_root`.
- **Tree edits** -- pure functions that return a rebuilt tree and never
  touch the one they were given.  All of them go through
  :func:`transform_tree`.

Text comparisons are NFKC-normalized and lowercased on both sides.
"""

from __future__ import annotations

import copy
import logging
import unicodedata
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import date, datetime, timezone

from dateutil import parser as dateparser

from ledger_manager.models import (
    CONJUNCTIONS,
    DEFAULT_OPERATORS,
    ROOT_GROUP_ID,
    VALID_OPERATORS,
    FilterCondition,
    FilterGroup,
    FilterNode,
    Transaction,
    new_id,
    parse_number,
)

logger = logging.getLogger(__name__)

_CONDITION_PATCH_KEYS = ("operator", "value", "value2")
_GROUP_PATCH_KEYS = ("conjunction", "children")


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def filter_transactions(
    transactions: Iterable[Transaction],
    filter: FilterGroup | None = None,
) -> list[Transaction]:
    """Return the transactions that pass *filter*, in their original order.

    Args:
        transactions: Transactions to filter.
        filter: Root of the filter tree.  ``None`` keeps everything.

    Returns:
        A new list; the input is not modified.
    """
    if filter is None:
        return list(transactions)
    return [txn for txn in transactions if evaluate_node(txn, filter)]


def evaluate_node(txn: Transaction, node: FilterNode) -> bool:
    """Evaluate one filter node against a transaction."""
    if isinstance(node, FilterCondition):
        return _check_condition(txn, node)

    if isinstance(node, FilterGroup):
        if not node.children:
            return True
        if node.conjunction == "and":
            return all(evaluate_node(txn, child) for child in node.children)
        if node.conjunction == "or":
            return any(evaluate_node(txn, child) for child in node.children)
        logger.debug("Unknown conjunction %r in group %s", node.conjunction, node.id)
        return False

    return False


def _check_condition(txn: Transaction, cond: FilterCondition) -> bool:
    check = _FIELD_CHECKS.get(cond.field)
    if check is None:
        return False
    try:
        return check(txn, cond)
    except (TypeError, ValueError, ArithmeticError, AttributeError) as exc:
        logger.debug("Condition %s failed on transaction %s: %s", cond.id, txn.id, exc)
        return False


def _check_date(txn: Transaction, cond: FilterCondition) -> bool:
    txn_date = _to_iso_date(txn.date)
    value = _to_iso_date(cond.value)
    if not txn_date or not value:
        return False

    op = cond.operator
    if op == "is_on":
        return txn_date == value
    if op == "is_not":
        return txn_date != value
    if op == "is_before":
        return txn_date < value
    if op == "is_after":
        return txn_date > value
    return False


def _check_amount(txn: Transaction, cond: FilterCondition) -> bool:
    txn_amount = parse_number(txn.amount)
    value = parse_number(cond.value)
    if txn_amount is None or value is None:
        return False

    op = cond.operator
    if op == "is":
        return txn_amount == value
    if op == "is_not":
        return txn_amount != value
    if op == "greater_than":
        return txn_amount > value
    if op == "less_than":
        return txn_amount < value
    return False


def _check_narration(txn: Transaction, cond: FilterCondition) -> bool:
    hay = _norm(txn.narration)
    needle = _norm(cond.value)

    op = cond.operator
    if op == "is":
        return hay == needle
    if op == "is_not":
        return hay != needle
    if op == "contains":
        return needle in hay
    if op == "does_not_contain":
        return needle not in hay
    if op == "starts_with":
        return hay.startswith(needle)
    if op == "ends_with":
        return hay.endswith(needle)
    if op == "is_blank":
        return hay.strip() == ""
    if op == "is_not_blank":
        return hay.strip() != ""
    return False


def _check_account(txn: Transaction, cond: FilterCondition) -> bool:
    accounts = [_norm(p.account) for p in txn.postings or []]
    needle = _norm(cond.value)
    if not needle:
        return False

    op = cond.operator
    if op == "is":
        return any(acc == needle for acc in accounts)
    if op == "is_not":
        return all(acc != needle for acc in accounts)
    if op == "contains":
        return any(needle in acc for acc in accounts)
    if op == "does_not_contain":
        return all(needle not in acc for acc in accounts)
    return False


def _check_tag(txn: Transaction, cond: FilterCondition) -> bool:
    tags = [_norm(t) for t in txn.tags or []]
    needle = _norm(cond.value)

    op = cond.operator
    if op == "contains":
        return needle in tags if needle else False
    if op == "does_not_contain":
        return needle not in tags if needle else True
    if op == "is_blank":
        return not tags
    if op == "is_not_blank":
        return bool(tags)
    return False


_FIELD_CHECKS: dict[str, Callable[[Transaction, FilterCondition], bool]] = {
    "date": _check_date,
    "amount": _check_amount,
    "narration": _check_narration,
    "account": _check_account,
    "tag": _check_tag,
}


def _norm(value: object) -> str:
    """NFKC-normalize and lowercase; ``None`` becomes the empty string."""
    text = "" if value is None else str(value)
    return unicodedata.normalize("NFKC", text).lower()


def _to_iso_date(value: object) -> str:
    """Return *value* as ``YYYY-MM-DD``, or ``""`` when it is not a date.

    Aware datetimes are converted to UTC before the date is taken.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = "" if value is None else str(value).strip()
    if not text:
        return ""
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        pass
    try:
        return _to_iso_date(dateparser.parse(text))
    except (ValueError, OverflowError):
        return ""


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def create_condition(field: str = "date", node_id: str | None = None) -> FilterCondition:
    """Create a condition for *field* with its default operator and value.

    The default value is today's date for ``date``, ``0`` for ``amount`` and
    the empty string for the text fields.

    Raises:
        ValueError: If *field* is not a filterable field.
    """
    if field not in VALID_OPERATORS:
        raise ValueError(f"Unknown filter field: {field!r}")

    if field == "date":
        value: object = date.today().isoformat()
    elif field == "amount":
        value = 0
    else:
        value = ""

    return FilterCondition(
        id=node_id or new_id(),
        field=field,
        operator=DEFAULT_OPERATORS[field],
        value=value,
    )


def create_group() -> FilterGroup:
    """Create an empty ``and`` group with a fresh id."""
    return FilterGroup(id=new_id(), conjunction="and", children=[])


def create_root() -> FilterGroup:
    """Create the empty top-level group of a filter tree."""
    return FilterGroup(id=ROOT_GROUP_ID, conjunction="and", children=[])


# ---------------------------------------------------------------------------
# Tree edits
# ---------------------------------------------------------------------------


def transform_tree(
    node: FilterNode,
    fn: Callable[[FilterNode], FilterNode | None],
) -> FilterNode | None:
    """Rebuild *node* bottom-up, passing every rebuilt node through *fn*.

    Each node is copied before *fn* sees it, so *fn* may return it (or a
    modified copy) without aliasing the input tree.  Returning ``None``
    drops the node from its parent.  Nodes added by *fn* are not visited.
    """
    if isinstance(node, FilterGroup):
        children: list[FilterNode] = []
        for child in node.children:
            rebuilt = transform_tree(child, fn)
            if rebuilt is not None:
                children.append(rebuilt)
        copied: FilterNode = FilterGroup(
            id=node.id, conjunction=node.conjunction, children=children
        )
    else:
        copied = replace(node)
    return fn(copied)


def find_node(tree: FilterNode, node_id: str) -> FilterNode | None:
    """Return the node with *node_id*, or ``None``."""
    if tree.id == node_id:
        return tree
    if isinstance(tree, FilterGroup):
        for child in tree.children:
            found = find_node(child, node_id)
            if found is not None:
                return found
    return None


def add_condition(tree: FilterGroup, group_id: str, field: str | None = None) -> FilterGroup:
    """Append a default condition for *field* (``date`` if omitted) to a group."""
    return _append_child(tree, group_id, create_condition(field or "date"))


def add_group(tree: FilterGroup, group_id: str) -> FilterGroup:
    """Append an empty ``and`` group to a group."""
    return _append_child(tree, group_id, create_group())


def remove_node(tree: FilterGroup, node_id: str) -> FilterGroup:
    """Remove the node with *node_id* and its subtree.

    The root cannot be removed; asking to is a no-op, as is an unknown id.
    """
    if node_id == tree.id:
        logger.debug("Refusing to remove the root filter group %s", node_id)
        return tree
    return transform_tree(tree, lambda node: None if node.id == node_id else node)


def update_node(tree: FilterGroup, node_id: str, patch: dict) -> FilterGroup:
    """Merge *patch* into the node with *node_id*.

    A group accepts ``conjunction`` and ``children``; a condition accepts
    ``operator``, ``value`` and ``value2``.  Other keys are ignored and the
    id never changes.  A ``field`` key on a condition resets it to the
    field's defaults before the rest of the patch applies, since operators
    are field specific.  An unknown id is a no-op.

    Raises:
        ValueError: If the patch sets an illegal field, conjunction or
            operator on an existing node.
    """

    def apply(node: FilterNode) -> FilterNode:
        if node.id != node_id:
            return node
        if isinstance(node, FilterCondition):
            if "field" in patch and patch["field"] != node.field:
                node = create_condition(patch["field"], node_id=node_id)
            changes = {k: patch[k] for k in _CONDITION_PATCH_KEYS if k in patch}
            if "operator" in changes:
                _check_operator(node.field, changes["operator"])
        else:
            changes = {k: patch[k] for k in _GROUP_PATCH_KEYS if k in patch}
            if "conjunction" in changes and changes["conjunction"] not in CONJUNCTIONS:
                raise ValueError(f"Unknown conjunction: {changes['conjunction']!r}")
            if "children" in changes:
                changes["children"] = copy.deepcopy(list(changes["children"]))
        return replace(node, **changes) if changes else node

    return transform_tree(tree, apply)


def change_field(tree: FilterGroup, node_id: str, field: str) -> FilterGroup:
    """Replace a condition with a default condition for *field*, keeping its id.

    Groups, unknown ids and a condition already on *field* are left alone.

    Raises:
        ValueError: If *field* is not a filterable field.
    """

    def apply(node: FilterNode) -> FilterNode:
        if node.id != node_id or not isinstance(node, FilterCondition) or node.field == field:
            return node
        return create_condition(field, node_id=node_id)

    return transform_tree(tree, apply)


def change_operator(tree: FilterGroup, node_id: str, operator: str) -> FilterGroup:
    """Set the operator of a condition.

    Raises:
        ValueError: If *operator* is not legal for the condition's field.
    """

    def apply(node: FilterNode) -> FilterNode:
        if node.id != node_id or not isinstance(node, FilterCondition):
            return node
        _check_operator(node.field, operator)
        return replace(node, operator=operator)

    return transform_tree(tree, apply)


def _check_operator(field: str, operator: str) -> None:
    if operator not in VALID_OPERATORS.get(field, ()):
        raise ValueError(f"Operator {operator!r} is not valid for field {field!r}")


def _append_child(tree: FilterGroup, group_id: str, child: FilterNode) -> FilterGroup:
    return _replace_node(
        tree,
        group_id,
        lambda node: (
            replace(node, children=[*node.children, child])
            if isinstance(node, FilterGroup)
            else node
        ),
    )


def _replace_node(
    tree: FilterGroup,
    node_id: str,
    fn: Callable[[FilterNode], FilterNode],
) -> FilterGroup:
    return transform_tree(tree, lambda node: fn(node) if node.id == node_id else node)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def node_to_dict(node: FilterNode) -> dict:
    """Convert a filter tree to plain dicts (TOML/JSON friendly).

    Amount values that are not ints or floats are stored as strings.
    """
    if isinstance(node, FilterGroup):
        return {
            "type": "group",
            "id": node.id,
            "conjunction": node.conjunction,
            "children": [node_to_dict(child) for child in node.children],
        }

    data = {
        "type": "condition",
        "id": node.id,
        "field": node.field,
        "operator": node.operator,
        "value": _plain_value(node.value),
    }
    if node.value2 is not None:
        data["value2"] = _plain_value(node.value2)
    return data


def node_from_dict(data: dict) -> FilterNode:
    """Rebuild a filter tree from :func:`node_to_dict` output.

    Raises:
        ValueError: If a node has no recognised ``type``.
        KeyError: If a condition lacks ``field`` or ``operator``.
    """
    kind = data.get("type")
    if kind == "group":
        return FilterGroup(
            id=str(data.get("id") or new_id()),
            conjunction=data.get("conjunction", "and"),
            children=[node_from_dict(child) for child in data.get("children", [])],
        )
    if kind == "condition":
        return FilterCondition(
            id=str(data.get("id") or new_id()),
            field=data["field"],
            operator=data["operator"],
            value=data.get("value", ""),
            value2=data.get("value2"),
        )
    raise ValueError(f"Unknown filter node type: {kind!r}")


def _plain_value(value: object) -> object:
    if isinstance(value, (str, int, float, bool)):
        return value
    return "" if value is None else str(value)
